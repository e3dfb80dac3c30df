"""
Error Types
===========
Exceptions raised while creating or registering tuber sources.
"""


class TuberError(Exception):
    """Base class for all ping-tuber errors."""


class SourceCreateError(TuberError):
    """A source could not be created. Nothing it acquired is left alive."""


class AudioSetupError(SourceCreateError):
    """No input device, failed negotiation, or the stream would not start."""


class ImageLoadError(SourceCreateError):
    """The source artwork could not be decoded."""


class RegistrationError(TuberError):
    """A source was registered with an invalid capability set."""
