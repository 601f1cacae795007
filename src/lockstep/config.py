"""Centralized configuration management for Lockstep.

The server, the playback devices and the CLI all read their settings here.
Every value can be overridden through the environment.

Environment variables follow the pattern LOCKSTEP_*.

Example:
    >>> from lockstep.config import get_config
    >>> config = get_config()
    >>> print(config.play_lead_ms)
    5000
"""

import logging
import os
from dataclasses import dataclass, field

log = logging.getLogger(__name__)


def _getenv_int(key: str, default: int) -> int:
    """Integer env var, or ``default`` when unset or unparsable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        log.warning(f"Invalid integer value for {key}={value}, using default {default}")
        return default


def _getenv_float(key: str, default: float) -> float:
    """Float env var, or ``default`` when unset or unparsable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        log.warning(f"Invalid float value for {key}={value}, using default {default}")
        return default


@dataclass
class LockstepConfig:
    """Lockstep configuration loaded from environment variables.

    Defaults run a server and devices on one machine.

    Attributes
    ----------
    media_path : str
        Directory scanned for the media catalog (one folder per project).
    server_host : str
        Server bind host address.
    server_port : int
        Server bind port number.
    server_url : str | None
        Full server URL used by devices. Auto-generated from host/port if None.
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    play_lead_ms : int
        Lead time added to server-now when a play command carries no target.
    sync_interval : float
        Seconds between drift-correction checks.
    sync_threshold : float
        Drift in seconds above which visuals are re-seeked.
    audio_sync_threshold : float
        Drift in seconds above which a secondary audio track is re-seeked.
    clock_poll_interval : float
        Seconds between clock-offset round trips.
    offset_change_threshold_ms : int
        Offset jump in milliseconds that forces an immediate resync.
    clock_max_failures : int
        Consecutive failed round trips before the clock degrades to local time.
    scheduler_tick : float
        Upper bound in seconds for a single scheduler wait.
    play_retry_delay : float
        Delay in seconds before the single retry of a rejected play().
    frame_rate : int
        Frames per second of frame-sequence content.
    """

    media_path: str = field(
        default_factory=lambda: os.getenv("LOCKSTEP_MEDIA_PATH", "./videos")
    )
    server_host: str = field(
        default_factory=lambda: os.getenv("LOCKSTEP_SERVER_HOST", "localhost")
    )
    server_port: int = field(
        default_factory=lambda: _getenv_int("LOCKSTEP_SERVER_PORT", 3000)
    )
    server_url: str | None = field(
        default_factory=lambda: os.getenv("LOCKSTEP_SERVER_URL")
    )

    # Logging
    log_level: str = field(
        default_factory=lambda: os.getenv("LOCKSTEP_LOG_LEVEL", "WARNING")
    )

    # Coordination
    play_lead_ms: int = field(
        default_factory=lambda: _getenv_int("LOCKSTEP_PLAY_LEAD_MS", 5000)
    )

    # Drift correction
    sync_interval: float = field(
        default_factory=lambda: _getenv_float("LOCKSTEP_SYNC_INTERVAL", 1.0)
    )
    sync_threshold: float = field(
        default_factory=lambda: _getenv_float("LOCKSTEP_SYNC_THRESHOLD", 0.1)
    )
    audio_sync_threshold: float = field(
        default_factory=lambda: _getenv_float("LOCKSTEP_AUDIO_SYNC_THRESHOLD", 0.05)
    )

    # Shared clock
    clock_poll_interval: float = field(
        default_factory=lambda: _getenv_float("LOCKSTEP_CLOCK_POLL_INTERVAL", 1.0)
    )
    offset_change_threshold_ms: int = field(
        default_factory=lambda: _getenv_int("LOCKSTEP_OFFSET_CHANGE_THRESHOLD_MS", 100)
    )
    clock_max_failures: int = field(
        default_factory=lambda: _getenv_int("LOCKSTEP_CLOCK_MAX_FAILURES", 3)
    )

    # Scheduler
    scheduler_tick: float = field(
        default_factory=lambda: _getenv_float("LOCKSTEP_SCHEDULER_TICK", 0.01)
    )
    play_retry_delay: float = field(
        default_factory=lambda: _getenv_float("LOCKSTEP_PLAY_RETRY_DELAY", 0.25)
    )

    # Frame sequences
    frame_rate: int = field(
        default_factory=lambda: _getenv_int("LOCKSTEP_FRAME_RATE", 24)
    )

    def __post_init__(self):
        """Check values and log the effective settings."""
        self._validate()
        self._log_config()

    def _validate(self):
        """Reject values the timing code cannot work with.

        Raises
        ------
        ValueError
            If configuration is invalid.
        """
        if not 1 <= self.server_port <= 65535:
            raise ValueError(
                f"Invalid port number: {self.server_port}. Must be between 1 and 65535"
            )

        if self.play_lead_ms < 0:
            raise ValueError(
                f"Invalid play lead: {self.play_lead_ms}ms. Must not be negative"
            )

        for name in ("sync_interval", "clock_poll_interval", "scheduler_tick"):
            if getattr(self, name) <= 0:
                raise ValueError(f"Invalid {name}: {getattr(self, name)}. Must be > 0")

        for name in ("sync_threshold", "audio_sync_threshold"):
            if getattr(self, name) <= 0:
                raise ValueError(f"Invalid {name}: {getattr(self, name)}. Must be > 0")

        if self.clock_max_failures < 1:
            raise ValueError(
                f"Invalid clock_max_failures: {self.clock_max_failures}. Must be >= 1"
            )

        if self.frame_rate < 1:
            raise ValueError(f"Invalid frame rate: {self.frame_rate}. Must be >= 1")

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_levels:
            log.warning(
                f"Invalid log level '{self.log_level}', using WARNING. "
                f"Valid levels: {', '.join(valid_levels)}"
            )
            self.log_level = "WARNING"

        # Don't use "0.0.0.0" in the URL handed to devices
        if self.server_url is None:
            url_host = self.server_host
            if url_host == "0.0.0.0":
                url_host = "localhost"
            self.server_url = f"http://{url_host}:{self.server_port}"

    def _log_config(self):
        """Log configuration for debugging."""
        log.info("=" * 80)
        log.info("Lockstep Configuration:")
        log.info(f"  Media Path: {self.media_path}")
        log.info(f"  Server: {self.server_url}")
        log.info(f"  Log Level: {self.log_level}")
        log.info(f"  Play Lead: {self.play_lead_ms}ms")
        log.info(
            f"  Drift Correction: every {self.sync_interval}s, "
            f"threshold {self.sync_threshold}s (audio {self.audio_sync_threshold}s)"
        )
        log.info(
            f"  Clock: poll every {self.clock_poll_interval}s, "
            f"resync on offset change > {self.offset_change_threshold_ms}ms"
        )
        log.info("=" * 80)


# process-wide instance
_config: LockstepConfig | None = None


def get_config() -> LockstepConfig:
    """Return the process-wide configuration, creating it on first use.

    Returns
    -------
    LockstepConfig
        Shared instance built from the environment.
    """
    global _config
    if _config is None:
        _config = LockstepConfig()
    return _config


def reload_config() -> LockstepConfig:
    """Rebuild the process-wide configuration from the current environment.

    Returns
    -------
    LockstepConfig
        The new instance.
    """
    global _config
    _config = LockstepConfig()
    return _config
