"""
Tests for the name registry.

Workers are simulated as threads sharing one in-memory store.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from core import keys
from core.errors import IdCollisionError, NameCollisionError, StoreTimeoutError
from core.registry import NameRegistry
from store.memory import InMemoryStore


@pytest.fixture
def store():
    """Store with a timeout so a broken test fails instead of hanging."""
    return InMemoryStore(timeout=5.0)


def run_workers(store, workers, world_size):
    """Run collect_names for every (id, name) concurrently."""
    with ThreadPoolExecutor(max_workers=len(workers)) as pool:
        futures = [
            pool.submit(NameRegistry(store).collect_names, worker_id, name, world_size)
            for worker_id, name in workers
        ]
        return [future.result() for future in futures]


class TestFixedSizeRegistry:
    """Test collect_names with a known group size."""

    def test_three_workers(self, store):
        """Test three workers obtain the same table."""
        results = run_workers(store, [(0, "a"), (1, "b"), (2, "c")], world_size=3)

        for table in results:
            assert table == {"a": 0, "b": 1, "c": 2}

    def test_identical_tables_on_every_worker(self, store):
        """Test every worker gets one entry per worker."""
        workers = [(i, f"worker{i}") for i in range(8)]
        results = run_workers(store, workers, world_size=8)

        expected = {name: worker_id for worker_id, name in workers}
        assert all(table == expected for table in results)
        assert all(len(table) == 8 for table in results)

    def test_single_worker(self, store):
        """Test a group of one."""
        table = NameRegistry(store).collect_names(0, "solo", 1)
        assert table == {"solo": 0}

    def test_publishes_own_name_only(self, store):
        """Test a worker writes only its own key."""
        store.set(keys.worker_key(1), "peer")

        NameRegistry(store).collect_names(0, "me", 2)

        assert store.get(keys.worker_key(0)) == b"me"
        assert store.num_keys() == 2

    def test_name_collision(self, store):
        """Two ids with the same name fail on the worker that sees both."""
        store.set(keys.worker_key(1), "dup")

        with pytest.raises(NameCollisionError) as exc_info:
            NameRegistry(store).collect_names(0, "dup", 2)

        error = exc_info.value
        assert error.name == "dup"
        assert error.first_id == 0
        assert error.second_id == 1
        assert "dup" in str(error)

    def test_name_collision_between_peers(self, store):
        """Test collision between two peers."""
        store.set(keys.worker_key(1), "same")
        store.set(keys.worker_key(2), "same")

        with pytest.raises(NameCollisionError) as exc_info:
            NameRegistry(store).collect_names(0, "other", 3)

        assert exc_info.value.first_id == 1
        assert exc_info.value.second_id == 2

    def test_concurrent_collision_detected(self, store):
        """Test both workers sharing a name fail."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(NameRegistry(store).collect_names, 0, "same", 2),
                pool.submit(NameRegistry(store).collect_names, 1, "same", 2),
            ]
            errors = [future.exception() for future in futures]

        assert all(isinstance(error, NameCollisionError) for error in errors)

    def test_missing_peer_propagates_store_timeout(self):
        """Test a missing peer surfaces the store timeout."""
        store = InMemoryStore(timeout=0.1)

        with pytest.raises(StoreTimeoutError):
            NameRegistry(store).collect_names(0, "alone", 2)

        # Own claim stays published
        assert store.check([keys.worker_key(0)])

    @pytest.mark.parametrize("self_id,world_size", [(0, 0), (2, 2), (-1, 3)])
    def test_invalid_arguments(self, store, self_id, world_size):
        """Test out-of-range ids and sizes are rejected."""
        with pytest.raises(ValueError):
            NameRegistry(store).collect_names(self_id, "x", world_size)


class TestDynamicRegistry:
    """Test collect_current_names with an unknown group size."""

    def test_first_worker_starts_manifest(self, store):
        """Test the first worker creates the manifest."""
        table = NameRegistry(store).collect_current_names(0, "alice")

        assert table == {"alice": 0}
        assert store.get(keys.MANIFEST_KEY) == b"alice-0"
        assert store.get(keys.worker_key(0)) == b"alice"

    def test_later_workers_see_earlier_ones(self, store):
        """Test later joiners see earlier workers."""
        registry = NameRegistry(store)

        registry.collect_current_names(0, "alice")
        registry.collect_current_names(3, "bob")
        table = registry.collect_current_names(1, "carol")

        assert table == {"alice": 0, "bob": 3, "carol": 1}
        assert store.get(keys.MANIFEST_KEY) == b"alice-0,bob-3,carol-1"

    def test_id_collision(self, store):
        """Test claiming a taken id fails."""
        registry = NameRegistry(store)
        registry.collect_current_names(0, "alice")

        with pytest.raises(IdCollisionError) as exc_info:
            registry.collect_current_names(0, "bob")

        error = exc_info.value
        assert error.worker_id == 0
        assert error.existing_name == "alice"
        assert error.attempted_name == "bob"

        # The failed claim leaves the store untouched
        assert store.get(keys.worker_key(0)) == b"alice"
        assert store.get(keys.MANIFEST_KEY) == b"alice-0"

    def test_name_collision(self, store):
        """Test joining with a taken name fails."""
        registry = NameRegistry(store)
        registry.collect_current_names(0, "alice")

        with pytest.raises(NameCollisionError) as exc_info:
            registry.collect_current_names(1, "alice")

        assert exc_info.value.first_id == 1
        assert exc_info.value.second_id == 0
        assert "not unique" in str(exc_info.value)

    def test_rejoin_with_same_id_and_name(self, store):
        """Test a worker joining twice is told its name is already registered."""
        registry = NameRegistry(store)
        registry.collect_current_names(0, "alice")

        with pytest.raises(NameCollisionError) as exc_info:
            registry.collect_current_names(0, "alice")

        error = exc_info.value
        assert error.first_id == 0
        assert error.second_id == 0
        assert "already registered to worker 0" in str(error)
        assert store.get(keys.MANIFEST_KEY) == b"alice-0"

    def test_corrupt_manifest_duplicate_name(self, store):
        """Test a manifest listing a name twice."""
        store.set(keys.MANIFEST_KEY, "x-1,x-2")

        with pytest.raises(NameCollisionError):
            NameRegistry(store).collect_current_names(0, "me")

    def test_concurrent_id_claim_one_wins(self, store):
        """Only one of several racing claims on the same id succeeds."""
        names = [f"w{i}" for i in range(6)]

        with ThreadPoolExecutor(max_workers=len(names)) as pool:
            futures = [
                pool.submit(NameRegistry(store).collect_current_names, 7, name)
                for name in names
            ]
            outcomes = [future.exception() for future in futures]

        winners = [names[i] for i, error in enumerate(outcomes) if error is None]
        assert len(winners) == 1
        assert all(
            isinstance(error, IdCollisionError)
            for error in outcomes if error is not None
        )
        assert store.get(keys.worker_key(7)) == winners[0].encode()

    @pytest.mark.parametrize("name", ["has-dash", "has,comma"])
    def test_rejects_unencodable_names(self, store, name):
        """Test names the manifest cannot hold are rejected."""
        with pytest.raises(ValueError):
            NameRegistry(store).collect_current_names(0, name)

    def test_rejects_negative_id(self, store):
        """Test negative ids are rejected."""
        with pytest.raises(ValueError):
            NameRegistry(store).collect_current_names(-1, "x")
