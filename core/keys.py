"""
Store key derivation.

All participants must derive identical keys, so the formats here are part of
the wire surface shared with independently deployed peers:

- worker id keys: the decimal worker id ("0", "1", ...)
- the group manifest: a single well-known key
- barrier keys: one triple per barrier epoch
"""

from typing import List, Optional, Tuple

from core.errors import ManifestFormatError


MANIFEST_KEY = "AllWorkerInfos"

RECORD_SEPARATOR = ","
FIELD_SEPARATOR = "-"

EPOCH_INFIX = "_ID_"
PROCESS_COUNT_PREFIX = "PROCESS_COUNT"
ACTIVE_CALLS_PREFIX = "ACTIVE_CALLS"
READY_PREFIX = "READY"


def worker_key(worker_id: int) -> str:
    """Key under which a worker publishes its name."""
    return str(worker_id)


def epoch_keys(epoch: int) -> Tuple[str, str, str]:
    """
    Derive the barrier keys for one epoch.

    Args:
        epoch: Barrier epoch (1 for the first barrier call)

    Returns:
        Tuple of (process_count_key, active_call_count_key, ready_key)
    """
    suffix = f"{EPOCH_INFIX}{epoch}"
    return (
        f"{PROCESS_COUNT_PREFIX}{suffix}",
        f"{ACTIVE_CALLS_PREFIX}{suffix}",
        f"{READY_PREFIX}{suffix}",
    )


def validate_manifest_name(name: str):
    """
    Reject names that cannot be stored in the manifest.

    The manifest has no escaping, so names must not contain either separator.
    """
    if not name:
        raise ValueError("Worker name must not be empty")
    for separator in (RECORD_SEPARATOR, FIELD_SEPARATOR):
        if separator in name:
            raise ValueError(
                f"Worker name '{name}' must not contain '{separator}'"
            )


def format_record(name: str, worker_id: int) -> str:
    return f"{name}{FIELD_SEPARATOR}{worker_id}"


def parse_manifest(text: str) -> List[Tuple[str, int]]:
    """
    Parse manifest text into (name, worker_id) pairs.

    Args:
        text: Manifest text, e.g. "alice-0,bob-1"

    Returns:
        Records in manifest order

    Raises:
        ManifestFormatError: If a record is not of the form "name-id"
    """
    records = []
    for record in text.split(RECORD_SEPARATOR):
        fields = record.split(FIELD_SEPARATOR)
        if len(fields) != 2 or not fields[0]:
            raise ManifestFormatError(f"Malformed manifest record: '{record}'")
        try:
            worker_id = int(fields[1])
        except ValueError:
            raise ManifestFormatError(
                f"Malformed worker id in manifest record: '{record}'"
            ) from None
        records.append((fields[0], worker_id))
    return records


def append_record(text: Optional[str], name: str, worker_id: int) -> str:
    """Append a record, starting a fresh manifest if there is none."""
    record = format_record(name, worker_id)
    if not text:
        return record
    return f"{text}{RECORD_SEPARATOR}{record}"
