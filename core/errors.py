"""
Error taxonomy for group rendezvous and barriers.

Collisions are fatal configuration errors and are never retried.
Store errors are raised by store clients and propagate unchanged through
the registry and barrier code.
"""


class RendezvousError(RuntimeError):
    """Base class for all rendezvous errors."""


class NameCollisionError(RendezvousError):
    """Two distinct worker ids registered the same worker name."""

    def __init__(self, name: str, first_id: int, second_id: int):
        self.name = name
        self.first_id = first_id
        self.second_id = second_id
        if first_id == second_id:
            message = (
                f"Worker name '{name}' is already registered to worker {first_id}. "
                f"A worker cannot join the same group twice."
            )
        else:
            message = (
                f"Worker name '{name}' is not unique. "
                f"Workers {first_id} and {second_id} share the same name."
            )
        super().__init__(message)


class IdCollisionError(RendezvousError):
    """A worker id is already claimed under a different name."""

    def __init__(self, worker_id: int, existing_name: str, attempted_name: str):
        self.worker_id = worker_id
        self.existing_name = existing_name
        self.attempted_name = attempted_name
        super().__init__(
            f"Worker id {worker_id} is not unique. Worker '{existing_name}' "
            f"already has this id and '{attempted_name}' cannot be added."
        )


class ManifestFormatError(RendezvousError, ValueError):
    """The group manifest contains a record that cannot be parsed."""


class StoreError(RendezvousError):
    """Base class for store client failures."""


class StoreTimeoutError(StoreError, TimeoutError):
    """A blocking store operation did not complete in time."""


class StoreUnavailableError(StoreError):
    """The store could not be reached."""
