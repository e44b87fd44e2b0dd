"""
Group agent: a worker's handle on its group.

Joins the group through the name registry, answers name/id lookups, and
synchronises with the other workers through the barrier counter. Shutdown
waits until no worker in the group has calls in flight.
"""

import argparse
import logging
import time
from typing import Callable, Dict, List, Optional

from core.barrier import BarrierCounter
from core.registry import NameRegistry
from store.base import Store
from store.http_store import HTTPStore
from store.prefix import PrefixStore
from worker.config import RendezvousConfig


logger = logging.getLogger(__name__)


class GroupAgent:
    """
    Worker-side session for one group.

    Owns the barrier epoch counter, so several agents for independent groups
    can live in the same process.
    """

    def __init__(self, config: RendezvousConfig, store: Optional[Store] = None):
        """
        Initialize group agent.

        Args:
            config: Worker configuration
            store: Store to rendezvous through. When omitted, an HTTP store
                for ``config.store_url`` is created under ``config.store_prefix``.
        """
        self.config = config

        self._owns_store = store is None
        if store is None:
            store = PrefixStore(
                config.store_prefix,
                HTTPStore(
                    config.store_url,
                    timeout=config.store_timeout,
                    retry_attempts=config.retry_attempts,
                    retry_delay=config.retry_delay,
                    poll_window=config.poll_window
                )
            )
        self.store = store

        self.registry = NameRegistry(self.store)
        self.barrier = BarrierCounter(self.store)

        self._name_to_id: Optional[Dict[str, int]] = None
        self._id_to_name: Dict[int, str] = {}

    def join(self) -> Dict[str, int]:
        """
        Join the group and collect every worker's name.

        Uses the fixed-size registry when ``world_size`` is configured and
        the dynamic registry otherwise.

        Returns:
            Mapping of worker name to worker id
        """
        if self.config.is_dynamic:
            name_to_id = self.registry.collect_current_names(
                self.config.worker_id,
                self.config.worker_name
            )
        else:
            name_to_id = self.registry.collect_names(
                self.config.worker_id,
                self.config.worker_name,
                self.config.world_size
            )

        self._name_to_id = name_to_id
        self._id_to_name = {worker_id: name for name, worker_id in name_to_id.items()}

        logger.info(
            f"Worker {self.config.worker_name} joined with {len(name_to_id)} known workers: "
            f"{self.worker_names}"
        )
        return dict(name_to_id)

    @property
    def joined(self) -> bool:
        return self._name_to_id is not None

    @property
    def worker_names(self) -> List[str]:
        """Known worker names ordered by worker id."""
        return [self._id_to_name[worker_id] for worker_id in sorted(self._id_to_name)]

    def _require_joined(self):
        if not self.joined:
            raise RuntimeError("Agent has not joined a group. Call join() first.")

    def get_worker_id(self, name: str) -> int:
        """
        Look up a worker id by name.

        Raises:
            KeyError: If no known worker has this name
        """
        self._require_joined()
        return self._name_to_id[name]

    def get_worker_name(self, worker_id: int) -> str:
        """
        Look up a worker name by id.

        Raises:
            KeyError: If no known worker has this id
        """
        self._require_joined()
        return self._id_to_name[worker_id]

    def sync(self, active_calls: int = 0) -> int:
        """
        Wait for every worker and return the group's total active calls.

        Every worker in the group must call sync the same number of times.

        Args:
            active_calls: This worker's in-flight call count

        Returns:
            Total active calls across the group
        """
        self._require_joined()
        if self.config.world_size is None:
            raise RuntimeError("Barrier requires a configured world_size")

        return self.barrier.sync_call_count(self.config.world_size, active_calls)

    def shutdown(self, active_calls_fn: Callable[[], int] = lambda: 0) -> int:
        """
        Leave the group once no worker has calls in flight.

        Repeats the barrier until the group-wide total reaches zero, then
        passes one final barrier so no worker exits while others still
        count on it.

        Args:
            active_calls_fn: Returns this worker's current in-flight call count

        Returns:
            Number of barrier rounds needed to reach quiescence
        """
        rounds = 0
        while True:
            rounds += 1
            total = self.sync(active_calls_fn())
            if total == 0:
                break
            logger.info(
                f"Waiting for {total} active calls to finish before shutdown "
                f"(round {rounds})"
            )
            time.sleep(self.config.shutdown_poll_interval)

        self.sync(0)
        logger.info(f"Worker {self.config.worker_name} shut down after {rounds} rounds")
        return rounds

    def close(self):
        """Close the store if this agent created it."""
        if self._owns_store:
            self.store.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Join a worker group and shut down together")
    parser.add_argument("--config", help="Path to JSON config file")
    parser.add_argument("--worker-id", type=int, help="This worker's id")
    parser.add_argument("--worker-name", help="This worker's name")
    parser.add_argument("--world-size", type=int, help="Group size (omit for dynamic join)")
    parser.add_argument("--store-url", help="Store server URL")
    parser.add_argument("--prefix", dest="store_prefix", help="Store key prefix for this group")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> RendezvousConfig:
    """Load the config file (if any) and apply command line overrides."""
    if args.config:
        config_dict = RendezvousConfig.from_json_file(args.config).to_dict()
    else:
        config_dict = {}

    for name in ("worker_id", "worker_name", "world_size", "store_url",
                 "store_prefix", "log_level"):
        value = getattr(args, name)
        if value is not None:
            config_dict[name] = value

    return RendezvousConfig.from_dict(config_dict)


def main(argv: Optional[List[str]] = None):
    """
    Main entry point for a worker.

    Args:
        argv: Command line arguments (defaults to sys.argv)
    """
    config = build_config(parse_args(argv))

    logging.basicConfig(
        level=config.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger.info(f"Starting {config}")

    agent = GroupAgent(config)
    try:
        agent.join()
        if config.world_size is not None:
            agent.shutdown()
    finally:
        agent.close()


if __name__ == "__main__":
    main()
