"""
Ping-Tuber Avatar Modules
=========================
"""

__version__ = "0.1.0"

from .errors import (
    TuberError,
    SourceCreateError,
    AudioSetupError,
    ImageLoadError,
    RegistrationError,
)
from .listener import MicrophoneChannel, SpeakingFlag, VoiceActivityDetector, rms
from .face import ImageStateBank
from .presenter import BufferState, FramePresenter
from .host import MemoryGraphics, SourceRegistry
from .source import TuberSource, StaticSource, TuberModule

__all__ = [
    "TuberError",
    "SourceCreateError",
    "AudioSetupError",
    "ImageLoadError",
    "RegistrationError",
    "MicrophoneChannel",
    "SpeakingFlag",
    "VoiceActivityDetector",
    "rms",
    "ImageStateBank",
    "BufferState",
    "FramePresenter",
    "MemoryGraphics",
    "SourceRegistry",
    "TuberSource",
    "StaticSource",
    "TuberModule",
]
