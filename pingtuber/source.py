"""
Tuber Sources
=============
The avatar sources a host can add to a scene, and the module that
registers them.

- TuberSource: swaps between idle and speaking frames driven by the mic
- StaticSource: a plain white texture, no audio
"""

import logging
from typing import Optional

from pydantic import ValidationError

from .config import AvatarConfig
from .errors import SourceCreateError
from .face import ImageStateBank
from .host import ColorFormat, Graphics, LoadContext, Module, Source
from .listener import MicrophoneChannel, SpeakingFlag, VoiceActivityDetector
from .presenter import BufferState, FramePresenter

logger = logging.getLogger(__name__)


class TuberSource(Source):
    """
    Audio-reactive avatar.

    Created by the host when the source is added to a scene; ticked and
    rendered every frame; destroyed when removed. Destruction stops the
    microphone before the frames and texture are released.
    """

    def __init__(
        self,
        graphics: Graphics,
        texture: int,
        bank: ImageStateBank,
        flag: SpeakingFlag,
        channel: MicrophoneChannel,
        config: AvatarConfig,
    ):
        self.graphics = graphics
        self.texture = texture
        self.bank = bank
        self.flag = flag
        self.channel = channel
        self.config = config
        self.presenter: Optional[FramePresenter] = FramePresenter(
            graphics, texture, bank, flag, x=config.draw_x, y=config.draw_y
        )
        self._width = config.width
        self._height = config.height

    @classmethod
    def get_id(cls) -> str:
        return "tuber_source"

    @classmethod
    def get_name(cls) -> str:
        return "Ping-Tuber Source"

    @classmethod
    def create(cls, settings: dict, graphics: Graphics) -> "TuberSource":
        """
        Build the avatar: decode artwork, derive frames, allocate the
        texture, start the microphone.

        Args:
            settings: Overrides for AvatarConfig fields (image_path, threshold, ...)
            graphics: Host surface the texture is allocated on

        Raises:
            SourceCreateError: Invalid settings, or a subclass for image
                and audio failures. Nothing stays allocated.
        """
        try:
            config = AvatarConfig(**settings)
        except ValidationError as e:
            raise SourceCreateError(f"Invalid avatar settings: {e}") from e

        bank = ImageStateBank.from_file(
            config.image_path,
            width=config.width,
            height=config.height,
            brightness=config.idle_brightness,
        )

        flag = SpeakingFlag()
        detector = VoiceActivityDetector(flag, threshold=config.threshold)
        channel = MicrophoneChannel(detector.process_block)

        texture = graphics.allocate(config.width, config.height, ColorFormat.RGBA)
        try:
            channel.start()
        except Exception:
            graphics.release(texture)
            raise

        logger.info(f"{cls.get_name()} created ({config.width}x{config.height}, threshold={config.threshold})")
        return cls(graphics, texture, bank, flag, channel, config)

    def _require_alive(self):
        if self.presenter is None:
            raise RuntimeError(f"{self.get_name()} has been destroyed")

    def tick(self, seconds: float):
        self._require_alive()
        self.presenter.tick(seconds)

    def render(self):
        self._require_alive()
        self.presenter.render()

    def update(self, settings: dict):
        # Reserved for threshold/device changes; nothing is applied yet
        logger.debug(f"Ignoring settings update: {sorted(settings)}")

    def get_width(self) -> int:
        return self._width

    def get_height(self) -> int:
        return self._height

    def destroy(self):
        if self.presenter is None:
            return

        try:
            self.channel.close()
        finally:
            # Runs after the stream is closed, even if closing it failed
            self.graphics.release(self.texture)
            self.presenter = None
            self.bank = None
        logger.info(f"{self.get_name()} destroyed")

    @property
    def is_speaking(self) -> bool:
        return self.flag.load()

    @property
    def current_buffer(self) -> BufferState:
        self._require_alive()
        return self.presenter.current_buffer


class StaticSource(Source):
    """Non-reactive variant: a solid white texture uploaded once."""

    WIDTH = 512
    HEIGHT = 512

    def __init__(self, graphics: Graphics, texture: int):
        self.graphics = graphics
        self.texture: Optional[int] = texture

    @classmethod
    def get_id(cls) -> str:
        return "tuber_static_source"

    @classmethod
    def get_name(cls) -> str:
        return "Ping-Tuber Static Source"

    @classmethod
    def create(cls, settings: dict, graphics: Graphics) -> "StaticSource":
        texture = graphics.allocate(cls.WIDTH, cls.HEIGHT, ColorFormat.RGBA)
        graphics.upload(texture, b"\xff" * (cls.WIDTH * cls.HEIGHT * 4), cls.WIDTH * 4)
        return cls(graphics, texture)

    def tick(self, seconds: float):
        pass

    def render(self):
        if self.texture is None:
            raise RuntimeError(f"{self.get_name()} has been destroyed")
        self.graphics.draw(self.texture, 0, 0, self.WIDTH, self.HEIGHT, False)

    def update(self, settings: dict):
        pass

    def get_width(self) -> int:
        return self.WIDTH

    def get_height(self) -> int:
        return self.HEIGHT

    def destroy(self):
        if self.texture is not None:
            self.graphics.release(self.texture)
            self.texture = None


class TuberModule(Module):
    """Module that provides the tuber sources."""

    def load(self, load_context: LoadContext) -> bool:
        source = (
            load_context.create_source_builder(TuberSource)
            .enable_get_name()
            .enable_update()
            .enable_video_render()
            .enable_video_tick()
            .enable_get_width()
            .enable_get_height()
            .build()
        )
        load_context.register_source(source)

        static = (
            load_context.create_source_builder(StaticSource)
            .enable_get_name()
            .enable_video_render()
            .enable_get_width()
            .enable_get_height()
            .build()
        )
        load_context.register_source(static)

        return True

    @classmethod
    def name(cls) -> str:
        return "Ping-tub"

    @classmethod
    def description(cls) -> str:
        return "Png-tuber OBS integration"

    @classmethod
    def author(cls) -> str:
        return "Ping-tub contributors"
