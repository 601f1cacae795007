"""Lockstep: synchronized multi-device media playback."""
import importlib.metadata
import logging

from lockstep.clock import SharedClock
from lockstep.drift import DriftCorrector, Role
from lockstep.scheduler import PlaybackScheduler
from lockstep.units import FrameSequenceUnit, PlayableUnit, StreamUnit

__all__ = [
    "DriftCorrector",
    "FrameSequenceUnit",
    "PlayableUnit",
    "PlaybackScheduler",
    "Role",
    "SharedClock",
    "StreamUnit",
]

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)
handler = logging.StreamHandler()
formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
handler.setFormatter(formatter)
log.addHandler(handler)

__version__ = importlib.metadata.version("lockstep")
