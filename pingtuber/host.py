"""
Host Module - Graphics Surface & Source Registration
====================================================
The host-side collaborators a tuber source plugs into.

Features:
- Graphics surface contract (allocate / upload / draw / release)
- In-memory surface that composites draws onto an RGBA canvas
- Capability-based source registration, validated at registration time
- Registry that creates, ticks, renders and destroys source instances
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional

import numpy as np

from .errors import RegistrationError

logger = logging.getLogger(__name__)


# =============================================================================
# GRAPHICS SURFACE
# =============================================================================

class ColorFormat(Enum):
    """Pixel formats a texture can be allocated with."""

    RGBA = "rgba"
    BGRA = "bgra"


class Graphics:
    """Texture operations the host offers to sources."""

    def allocate(self, width: int, height: int, color_format: ColorFormat = ColorFormat.RGBA) -> int:
        raise NotImplementedError

    def upload(self, handle: int, pixel_bytes, row_stride: int):
        raise NotImplementedError

    def draw(self, handle: int, x: int, y: int, width: int, height: int, flip: bool = False):
        raise NotImplementedError

    def release(self, handle: int):
        raise NotImplementedError


class MemoryGraphics(Graphics):
    """
    Graphics surface backed by numpy arrays.

    Textures live in host memory; draw() alpha-composites a texture onto a
    canvas the caller clears at the start of each frame and reads back
    with frame().
    """

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.canvas = np.zeros((height, width, 4), dtype=np.uint8)
        self.draw_count = 0

        self._textures: dict[int, np.ndarray] = {}
        self._upload_counts: dict[int, int] = {}
        self._next_handle = 1

    def allocate(self, width: int, height: int, color_format: ColorFormat = ColorFormat.RGBA) -> int:
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid texture size {width}x{height}")
        if color_format is not ColorFormat.RGBA:
            raise ValueError(f"Unsupported texture format: {color_format}")

        handle = self._next_handle
        self._next_handle += 1
        self._textures[handle] = np.zeros((height, width, 4), dtype=np.uint8)
        self._upload_counts[handle] = 0

        logger.debug(f"Allocated texture {handle} ({width}x{height})")
        return handle

    def upload(self, handle: int, pixel_bytes, row_stride: int):
        texture = self._textures[handle]
        height, width = texture.shape[:2]

        if row_stride < width * 4:
            raise ValueError(f"Row stride {row_stride} is narrower than {width} RGBA pixels")

        data = np.asarray(memoryview(pixel_bytes).cast("B"))
        if data.size != row_stride * height:
            raise ValueError(
                f"Expected {row_stride * height} bytes for texture {handle}, got {data.size}"
            )

        rows = data.reshape(height, row_stride)[:, :width * 4]
        texture[...] = rows.reshape(height, width, 4)
        self._upload_counts[handle] += 1

    def draw(self, handle: int, x: int, y: int, width: int, height: int, flip: bool = False):
        texture = self._textures[handle]
        self.draw_count += 1

        if width <= 0 or height <= 0:
            return

        tex_height, tex_width = texture.shape[:2]
        if (width, height) != (tex_width, tex_height):
            rows = np.arange(height) * tex_height // height
            cols = np.arange(width) * tex_width // width
            texture = texture[rows][:, cols]
        if flip:
            texture = texture[::-1]

        # Clip the destination rectangle to the canvas
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + width, self.width), min(y + height, self.height)
        if x0 >= x1 or y0 >= y1:
            return

        src = texture[y0 - y:y1 - y, x0 - x:x1 - x].astype(np.float32)
        dst = self.canvas[y0:y1, x0:x1]

        alpha = src[..., 3:4] / 255.0
        dst[..., :3] = (src[..., :3] * alpha + dst[..., :3] * (1.0 - alpha)).astype(np.uint8)
        dst[..., 3] = np.maximum(dst[..., 3], src[..., 3].astype(np.uint8))

    def release(self, handle: int):
        self._textures.pop(handle, None)
        self._upload_counts.pop(handle, None)
        logger.debug(f"Released texture {handle}")

    def clear(self, color: tuple[int, int, int, int] = (0, 0, 0, 0)):
        """Fill the canvas, normally once per frame before rendering."""
        self.canvas[...] = color

    def frame(self) -> np.ndarray:
        """Copy of the canvas as RGBA."""
        return self.canvas.copy()

    def texture_pixels(self, handle: int) -> np.ndarray:
        """Current contents of a texture (read-only view)."""
        view = self._textures[handle].view()
        view.flags.writeable = False
        return view

    def upload_count(self, handle: int) -> int:
        return self._upload_counts[handle]

    def is_allocated(self, handle: int) -> bool:
        return handle in self._textures


# =============================================================================
# SOURCE REGISTRATION
# =============================================================================

class Capability(Enum):
    """Optional source behaviours, each backed by the named method."""

    GET_NAME = "get_name"
    UPDATE = "update"
    VIDEO_RENDER = "render"
    VIDEO_TICK = "tick"
    GET_WIDTH = "get_width"
    GET_HEIGHT = "get_height"

    @property
    def method(self) -> str:
        return self.value


class Source:
    """
    Base class for sources.

    Subclasses implement get_id() and create(); every optional capability
    is a method the subclass must define before it can be enabled.
    """

    @classmethod
    def get_id(cls) -> str:
        raise NotImplementedError

    @classmethod
    def create(cls, settings: dict, graphics: Graphics) -> "Source":
        raise NotImplementedError

    def destroy(self):
        pass


def implements(source_class: type, capability: Capability) -> bool:
    """True when the source class provides the method behind a capability."""
    return callable(getattr(source_class, capability.method, None))


@dataclass(frozen=True)
class SourceInfo:
    """A validated source registration."""

    id: str
    source_class: type
    capabilities: frozenset

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


class SourceInfoBuilder:
    """Fluent builder for SourceInfo. Every enable_* call is checked in build()."""

    def __init__(self, source_class: type):
        self.source_class = source_class
        self._capabilities: set[Capability] = set()

    def _enable(self, capability: Capability) -> "SourceInfoBuilder":
        self._capabilities.add(capability)
        return self

    def enable_get_name(self) -> "SourceInfoBuilder":
        return self._enable(Capability.GET_NAME)

    def enable_update(self) -> "SourceInfoBuilder":
        return self._enable(Capability.UPDATE)

    def enable_video_render(self) -> "SourceInfoBuilder":
        return self._enable(Capability.VIDEO_RENDER)

    def enable_video_tick(self) -> "SourceInfoBuilder":
        return self._enable(Capability.VIDEO_TICK)

    def enable_get_width(self) -> "SourceInfoBuilder":
        return self._enable(Capability.GET_WIDTH)

    def enable_get_height(self) -> "SourceInfoBuilder":
        return self._enable(Capability.GET_HEIGHT)

    def build(self) -> SourceInfo:
        """
        Validate and freeze the registration.

        Raises:
            RegistrationError: A capability is enabled that the class does
                not implement
        """
        name = self.source_class.__name__
        missing = sorted(
            capability.method
            for capability in self._capabilities
            if not implements(self.source_class, capability)
        )
        if missing:
            raise RegistrationError(f"{name} enables capabilities it does not implement: {', '.join(missing)}")

        try:
            source_id = self.source_class.get_id()
        except NotImplementedError:
            raise RegistrationError(f"{name} does not define a source id")

        return SourceInfo(
            id=source_id,
            source_class=self.source_class,
            capabilities=frozenset(self._capabilities),
        )


class LoadContext:
    """Collects the sources a module registers while loading."""

    def __init__(self):
        self.sources: dict[str, SourceInfo] = {}

    def create_source_builder(self, source_class: type) -> SourceInfoBuilder:
        return SourceInfoBuilder(source_class)

    def register_source(self, info: SourceInfo):
        if info.id in self.sources:
            raise RegistrationError(f"Source id already registered: {info.id}")
        self.sources[info.id] = info


class Module:
    """A plugin module: metadata plus a load() that registers sources."""

    def load(self, load_context: LoadContext) -> bool:
        raise NotImplementedError

    @classmethod
    def name(cls) -> str:
        return cls.__name__

    @classmethod
    def description(cls) -> str:
        return ""

    @classmethod
    def author(cls) -> str:
        return ""


class SourceRegistry:
    """
    Minimal host: loads modules, then creates and drives source instances.

    Only capabilities a source enabled are ever invoked on it.
    """

    def __init__(self, graphics: Graphics):
        self.graphics = graphics
        self._sources: dict[str, SourceInfo] = {}
        self._instances: list[tuple[SourceInfo, Any]] = []

    def load_module(self, module: Module):
        """
        Load a module and merge its sources into the registry.

        Raises:
            RegistrationError: load() failed or an id is already taken
        """
        context = LoadContext()
        if not module.load(context):
            raise RegistrationError(f"Module {module.name()} failed to load")

        for source_id, info in context.sources.items():
            if source_id in self._sources:
                raise RegistrationError(f"Source id already registered: {source_id}")
            self._sources[source_id] = info

        logger.info(f"Loaded module {module.name()} ({len(context.sources)} sources)")

    @property
    def source_ids(self) -> list[str]:
        return list(self._sources)

    def info(self, source_id: str) -> SourceInfo:
        try:
            return self._sources[source_id]
        except KeyError:
            raise KeyError(f"Unknown source id: {source_id}") from None

    def display_name(self, source_id: str) -> str:
        info = self.info(source_id)
        if info.supports(Capability.GET_NAME):
            return info.source_class.get_name()
        return source_id

    def create(self, source_id: str, settings: Optional[dict] = None):
        """Create an instance. Creation errors propagate untouched."""
        info = self.info(source_id)
        instance = info.source_class.create(dict(settings or {}), self.graphics)
        self._instances.append((info, instance))
        return instance

    def _with(self, capability: Capability) -> Iterator[Any]:
        for info, instance in list(self._instances):
            if info.supports(capability):
                yield instance

    def tick(self, seconds: float):
        for instance in self._with(Capability.VIDEO_TICK):
            instance.tick(seconds)

    def render(self):
        for instance in self._with(Capability.VIDEO_RENDER):
            instance.render()

    def update(self, instance, settings: dict):
        for info, candidate in self._instances:
            if candidate is instance and info.supports(Capability.UPDATE):
                instance.update(settings)

    def destroy(self, instance):
        for entry in list(self._instances):
            if entry[1] is instance:
                self._instances.remove(entry)
                instance.destroy()

    def destroy_all(self):
        while self._instances:
            _, instance = self._instances.pop()
            instance.destroy()

    @property
    def instances(self) -> list:
        return [instance for _, instance in self._instances]
