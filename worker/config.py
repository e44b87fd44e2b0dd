"""
Worker configuration for group rendezvous.

Defines all configuration parameters for a worker joining a group.
"""

import uuid
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any
import json


@dataclass
class RendezvousConfig:
    """
    Configuration for a worker joining a group.

    This includes identity, group shape, store connection,
    and operational settings.
    """

    # Identity
    worker_id: int = 0
    worker_name: str = field(
        default_factory=lambda: f"worker_{uuid.uuid4().hex[:8]}"
    )

    # Group size (None joins a group of unknown size)
    world_size: Optional[int] = None

    # Store connection
    store_url: str = "http://localhost:8000"
    store_prefix: str = "default"
    store_timeout: Optional[float] = 300.0  # seconds, None waits forever
    retry_attempts: int = 3
    retry_delay: float = 1.0  # seconds
    poll_window: float = 30.0  # seconds a single wait request is held

    # Shutdown
    shutdown_poll_interval: float = 0.5  # seconds between quiescence checks

    # Logging
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    def __post_init__(self):
        """Validate settings."""
        if self.worker_id < 0:
            raise ValueError(f"worker_id must be non-negative, got {self.worker_id}")

        if self.world_size is not None:
            if self.world_size <= 0:
                raise ValueError(f"world_size must be positive, got {self.world_size}")
            if self.worker_id >= self.world_size:
                raise ValueError(
                    f"worker_id {self.worker_id} out of range for world_size {self.world_size}"
                )

        if not self.worker_name:
            raise ValueError("worker_name must not be empty")

        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")

    @property
    def is_dynamic(self) -> bool:
        """True when the group size is discovered at join time."""
        return self.world_size is None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert config to dictionary.

        Returns:
            Configuration as dictionary
        """
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'RendezvousConfig':
        """
        Create config from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            RendezvousConfig instance
        """
        return cls(**config_dict)

    @classmethod
    def from_json_file(cls, path: str) -> 'RendezvousConfig':
        """
        Load config from JSON file.

        Args:
            path: Path to JSON config file

        Returns:
            RendezvousConfig instance
        """
        with open(path, 'r') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    def to_json_file(self, path: str):
        """
        Save config to JSON file.

        Args:
            path: Path to save JSON config
        """
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"RendezvousConfig(worker_id={self.worker_id}, "
            f"worker_name='{self.worker_name}', "
            f"world_size={self.world_size}, "
            f"store='{self.store_url}')"
        )
