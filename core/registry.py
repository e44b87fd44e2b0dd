"""
Name registry for group rendezvous.

Workers publish their name under their numeric id and discover the names of
every other worker through the shared store. Two variants are provided:

- collect_names: the group size is known up front. Each worker publishes
  its own name and reads every peer key, blocking until the peer appears.
- collect_current_names: the group size is unknown. Each worker atomically
  claims its id, then reads and extends a single manifest of all workers
  registered so far.

The dynamic variant's manifest update is an unprotected read-modify-write.
Workers joining concurrently can overwrite each other's manifest records
(last writer wins), so a worker that joined alongside others may not see
every peer. The id claim itself is strictly consistent.
"""

import logging
from typing import Dict

from core import keys
from core.errors import IdCollisionError, NameCollisionError
from store.base import Store


logger = logging.getLogger(__name__)


def _add_name(name_to_id: Dict[str, int], name: str, worker_id: int):
    if name in name_to_id:
        existing_id = name_to_id[name]
        logger.error(
            f"Worker name '{name}' claimed by both {existing_id} and {worker_id}"
        )
        raise NameCollisionError(name, existing_id, worker_id)
    name_to_id[name] = worker_id


class NameRegistry:
    """
    Builds the name -> id table for a group of workers.

    The registry holds no state between calls; everything it knows comes
    from the store.
    """

    def __init__(self, store: Store):
        """
        Args:
            store: Store shared by every worker in the group
        """
        self.store = store

    def collect_names(
        self,
        self_id: int,
        self_name: str,
        world_size: int
    ) -> Dict[str, int]:
        """
        Register with a group of known size and collect every worker's name.

        Blocks until all ``world_size`` workers have published.

        Args:
            self_id: This worker's id, in [0, world_size)
            self_name: This worker's name
            world_size: Number of workers in the group

        Returns:
            Mapping of worker name to worker id, one entry per worker

        Raises:
            NameCollisionError: If two workers share a name
        """
        if world_size <= 0:
            raise ValueError(f"world_size must be positive, got {world_size}")
        if not 0 <= self_id < world_size:
            raise ValueError(
                f"Worker id {self_id} out of range for world_size {world_size}"
            )

        self.store.set(keys.worker_key(self_id), self_name)

        name_to_id = {self_name: self_id}
        for worker_id in range(world_size):
            if worker_id == self_id:
                continue

            worker_name = self.store.get(keys.worker_key(worker_id)).decode("utf-8")
            logger.debug(f"Discovered worker {worker_id}: '{worker_name}'")
            _add_name(name_to_id, worker_name, worker_id)

        logger.info(
            f"Worker '{self_name}' ({self_id}) joined group of {world_size}"
        )
        return name_to_id

    def collect_current_names(self, self_id: int, self_name: str) -> Dict[str, int]:
        """
        Register with a group of unknown size.

        Claims ``self_id`` atomically, then records this worker in the group
        manifest. Only workers present in the manifest at read time are
        returned.

        Args:
            self_id: This worker's id
            self_name: This worker's name (must not contain ',' or '-')

        Returns:
            Mapping of worker name to worker id for every worker registered so far

        Raises:
            IdCollisionError: If ``self_id`` is claimed by another name
            NameCollisionError: If the manifest already holds ``self_name``
                or lists a name twice
        """
        if self_id < 0:
            raise ValueError(f"Worker id must be non-negative, got {self_id}")
        keys.validate_manifest_name(self_name)

        id_key = keys.worker_key(self_id)
        name_bytes = self_name.encode("utf-8")

        stored = self.store.compare_set(id_key, b"", name_bytes)
        if stored != name_bytes:
            existing_name = stored.decode("utf-8")
            logger.error(f"Worker id {self_id} already claimed by '{existing_name}'")
            raise IdCollisionError(self_id, existing_name, self_name)

        # Readers that only use get() still see the id key
        self.store.set(id_key, name_bytes)

        name_to_id = {self_name: self_id}

        manifest = None
        if self.store.check([keys.MANIFEST_KEY]):
            manifest = self.store.get(keys.MANIFEST_KEY).decode("utf-8")
            for worker_name, worker_id in keys.parse_manifest(manifest):
                _add_name(name_to_id, worker_name, worker_id)
        else:
            logger.debug(f"No manifest found, '{self_name}' starts the group")

        self.store.set(
            keys.MANIFEST_KEY,
            keys.append_record(manifest, self_name, self_id)
        )

        logger.info(
            f"Worker '{self_name}' ({self_id}) joined, "
            f"{len(name_to_id)} workers known"
        )
        return name_to_id
