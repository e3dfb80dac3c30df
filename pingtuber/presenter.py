"""
Frame Presenter
===============
Chooses which avatar frame is resident in the texture.

tick() reads the speaking flag and uploads only when the choice changes;
render() draws whatever is resident and never touches the flag. Both run on
the host's render thread.
"""

import logging
from enum import Enum

from .face import ImageStateBank
from .host import Graphics
from .listener import SpeakingFlag

logger = logging.getLogger(__name__)


class BufferState(Enum):
    """Which frame is currently uploaded to the texture."""

    UNSET = "unset"
    IDLE = "idle"
    SPEAKING = "speaking"


class FramePresenter:
    """
    Upload-on-change presenter for an ImageStateBank.

    Args:
        graphics: Surface that owns the texture
        texture: Texture handle, same size as the bank
        bank: Idle and speaking frames
        flag: Speaking flag written by the audio thread
        x, y: Draw position
    """

    def __init__(
        self,
        graphics: Graphics,
        texture: int,
        bank: ImageStateBank,
        flag: SpeakingFlag,
        x: int = 0,
        y: int = 0,
    ):
        self.graphics = graphics
        self.texture = texture
        self.bank = bank
        self.flag = flag
        self.x = x
        self.y = y

        self.current_buffer = BufferState.UNSET
        self.upload_count = 0

    def _upload(self, state: BufferState):
        if state is BufferState.SPEAKING:
            pixels = self.bank.speaking_buffer
        else:
            pixels = self.bank.idle_buffer

        self.graphics.upload(self.texture, pixels, self.bank.row_stride)
        logger.debug(f"Avatar frame {self.current_buffer.value} -> {state.value}")
        self.current_buffer = state
        self.upload_count += 1

    def tick(self, seconds: float = 0.0):
        """Sync the texture with the flag. Elapsed time is not used."""
        if self.flag.load():
            if self.current_buffer is not BufferState.SPEAKING:
                self._upload(BufferState.SPEAKING)
        elif self.current_buffer is not BufferState.IDLE:
            self._upload(BufferState.IDLE)

    def render(self):
        self.graphics.draw(self.texture, self.x, self.y, self.bank.width, self.bank.height, False)
