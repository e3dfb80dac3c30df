"""
Microphone Listener Module - Voice Activity
===========================================
Captures the default microphone and turns each audio block into a single
"is speaking" bit.

Features:
- Default input device and default input configuration (no negotiation here)
- Energy-based (RMS) voice activity detection, one decision per block
- Lock-free hand-off of the latest decision to the tick thread
- Fatal setup errors, non-fatal per-block errors
"""

import logging
from typing import Callable, Optional

import numpy as np

from .errors import AudioSetupError

logger = logging.getLogger(__name__)

# RMS on a [-1, 1] sample scale above which a block counts as speech
DEFAULT_THRESHOLD = 0.1


def rms(block) -> float:
    """
    Root-mean-square amplitude of a block of samples.

    Every sample counts, so interleaved multi-channel blocks are treated
    as one flat run of samples.

    Args:
        block: Samples as a numpy array (any shape) or sequence of floats

    Returns:
        sqrt(mean(sample ** 2))
    """
    samples = np.asarray(block, dtype=np.float64)
    if samples.size == 0:
        raise ValueError("Cannot compute RMS of an empty block")
    return float(np.sqrt(np.mean(np.square(samples))))


class SpeakingFlag:
    """
    Latest speaking classification, shared between two threads.

    The audio callback is the only writer, the tick thread the only reader.
    Rebinding a bool attribute is a single atomic store under the
    interpreter lock, so load() never blocks and always sees the most
    recent completed store. Nothing is queued: last write wins.
    """

    __slots__ = ("_value",)

    def __init__(self, value: bool = False):
        self._value = bool(value)

    def store(self, value: bool):
        self._value = bool(value)

    def load(self) -> bool:
        return self._value

    def __bool__(self) -> bool:
        return self._value

    def __repr__(self) -> str:
        return f"SpeakingFlag({self._value})"


class VoiceActivityDetector:
    """
    Memoryless per-block speech detector.

    Each block is classified on its own (RMS > threshold) and the result
    overwrites the shared flag, whether it changed or not. There is no
    smoothing, so marginal input can flip the flag every block.

    The comparison is strict on the computed level. A block whose samples
    all sit at the threshold value is not guaranteed to stay silent:
    float32 samples round up (float32(0.1) > 0.1) and the float64 mean of
    a long run can land one ulp above it.
    """

    def __init__(self, flag: SpeakingFlag, threshold: float = DEFAULT_THRESHOLD):
        self.flag = flag
        self.threshold = threshold

    def is_speaking(self, level: float) -> bool:
        """Classify an RMS level."""
        return level > self.threshold

    def process_block(self, block) -> Optional[bool]:
        """
        Classify one block and publish the result.

        Runs on the audio thread: no logging, no locks.

        Returns:
            The classification, or None for an empty block (flag untouched)
        """
        samples = np.asarray(block)
        if samples.size == 0:
            return None

        speaking = self.is_speaking(rms(samples))
        self.flag.store(speaking)
        return speaking


class MicrophoneChannel:
    """
    Live input stream on the system default microphone.

    The stream delivers float32 blocks on a thread owned by PortAudio; each
    block is handed to ``on_block``. Blocks flagged with a status (overflow,
    device trouble) are counted and dropped so the last decision stays in
    place.
    """

    def __init__(self, on_block: Callable[[np.ndarray], object]):
        """
        Initialize the channel (nothing is opened until start()).

        Args:
            on_block: Called with each clean block, on the audio thread
        """
        self.on_block = on_block

        # Negotiated with the device on start()
        self.device_name: Optional[str] = None
        self.sample_rate: Optional[float] = None
        self.channels: Optional[int] = None

        # Blocks dropped because the audio subsystem reported a status
        self.status_errors = 0

        self._stream = None
        self._closing = False

    def _audio_callback(self, indata, frames, time_info, status):
        if status:
            self.status_errors += 1
            return
        self.on_block(indata)

    def _on_finished(self):
        if not self._closing:
            logger.warning("Audio stream ended unexpectedly, speaking state is frozen")

    def start(self):
        """
        Open and start the default input stream.

        Raises:
            AudioSetupError: No input device, unusable configuration, or the
                stream failed to start
        """
        if self._stream is not None:
            logger.warning("Microphone channel already running")
            return

        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            raise AudioSetupError(f"Audio backend is not available: {e}") from e

        try:
            device = sd.query_devices(kind="input")
        except (sd.PortAudioError, ValueError) as e:
            raise AudioSetupError(f"No default input device: {e}") from e

        channels = int(device["max_input_channels"])
        if channels < 1:
            raise AudioSetupError(f"Default device has no input channels: {device['name']}")

        self.device_name = device["name"]
        self.sample_rate = device["default_samplerate"]
        self.channels = channels

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                callback=self._audio_callback,
                finished_callback=self._on_finished,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise AudioSetupError(f"Could not open input stream on {self.device_name}: {e}") from e

        try:
            stream.start()
        except sd.PortAudioError as e:
            stream.close()
            raise AudioSetupError(f"Could not start input stream on {self.device_name}: {e}") from e

        self._closing = False
        self._stream = stream
        logger.info(
            f"Audio capture started on [{self.device_name}] "
            f"({self.sample_rate:g} Hz, {self.channels} ch)"
        )

    def close(self):
        """Stop the stream, then release it. No callback fires after this returns."""
        stream, self._stream = self._stream, None
        if stream is None:
            return

        self._closing = True
        try:
            stream.stop()
        finally:
            stream.close()

        if self.status_errors:
            logger.info(f"Audio capture dropped {self.status_errors} blocks with errors")
        logger.info("Audio capture stopped")

    @property
    def stopped(self) -> bool:
        """True once close() has run (or before start())."""
        return self._stream is None

    @property
    def is_running(self) -> bool:
        return self._stream is not None


def list_input_devices() -> list[tuple[int, dict]]:
    """List (index, info) for every device with input channels."""
    import sounddevice as sd

    return [
        (i, device)
        for i, device in enumerate(sd.query_devices())
        if device["max_input_channels"] > 0
    ]
