"""
Preview Host
============
A stand-in for the broadcast application: drives tick/render on a
SourceRegistry at a fixed rate and shows the canvas in an OpenCV window.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional

import numpy as np

from .host import MemoryGraphics, SourceRegistry

logger = logging.getLogger(__name__)


# =============================================================================
# DISPLAY WINDOW
# =============================================================================

class DisplayWindow:
    """OpenCV window for displaying rendered frames."""

    def __init__(
        self,
        window_name: str = "Ping-Tuber",
        width: int = 512,
        height: int = 512,
    ):
        self.window_name = window_name
        self.width = width
        self.height = height
        self._open = False

    def show(self, frame: np.ndarray) -> bool:
        """
        Show one RGBA frame.

        Returns:
            False once the user pressed 'q' or ESC
        """
        import cv2

        if not self._open:
            cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
            cv2.resizeWindow(self.window_name, self.width, self.height)
            self._open = True

        cv2.imshow(self.window_name, cv2.cvtColor(frame, cv2.COLOR_RGBA2BGR))

        key = cv2.waitKey(1) & 0xFF
        return not (key == ord('q') or key == 27)  # q or ESC

    def close(self):
        if self._open:
            import cv2

            cv2.destroyWindow(self.window_name)
            self._open = False


# =============================================================================
# HOST LOOP
# =============================================================================

class PreviewHost:
    """
    Fixed-rate scheduler for the sources in a registry.

    Each frame: tick every source with the elapsed seconds, clear the
    canvas, render every source, hand the canvas to the display.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        graphics: MemoryGraphics,
        fps: int = 30,
        display: Optional[DisplayWindow] = None,
        on_frame: Optional[Callable[[int, np.ndarray], None]] = None,
    ):
        self.registry = registry
        self.graphics = graphics
        self.fps = fps
        self.display = display
        self.on_frame = on_frame

        self._running = False
        self.frames = 0

    def run_frame(self, seconds: float) -> np.ndarray:
        """Tick and render once; return the composed RGBA frame."""
        self.registry.tick(seconds)
        self.graphics.clear()
        self.registry.render()
        return self.graphics.frame()

    def run(self, max_frames: Optional[int] = None):
        """
        Run until stop(), the window closes, or max_frames is reached.

        All sources are destroyed on the way out.
        """
        self._running = True
        frame_duration = 1.0 / self.fps
        last = time.monotonic()

        logger.info(f"Preview host running at {self.fps} FPS")

        try:
            while self._running:
                started = time.monotonic()
                frame = self.run_frame(started - last)
                last = started

                if self.on_frame:
                    self.on_frame(self.frames, frame)
                self.frames += 1

                if self.display and not self.display.show(frame):
                    break
                if max_frames is not None and self.frames >= max_frames:
                    break

                remaining = frame_duration - (time.monotonic() - started)
                if remaining > 0:
                    time.sleep(remaining)
        finally:
            self._running = False
            self.registry.destroy_all()
            if self.display:
                self.display.close()
            logger.info(f"Preview host stopped after {self.frames} frames")

    def stop(self):
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running


def create_placeholder_avatar(path: Path, width: int = 512, height: int = 512) -> Path:
    """Draw a simple face with a transparent background and save it as PNG."""
    import cv2

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    image = np.zeros((height, width, 4), dtype=np.uint8)
    cx, cy = width // 2, height // 2
    r = min(width, height) // 3

    cv2.circle(image, (cx, cy), r, (160, 180, 220, 255), -1)  # Face
    cv2.circle(image, (cx - r // 3, cy - r // 4), max(r // 8, 1), (50, 50, 50, 255), -1)  # Left eye
    cv2.circle(image, (cx + r // 3, cy - r // 4), max(r // 8, 1), (50, 50, 50, 255), -1)  # Right eye
    cv2.ellipse(image, (cx, cy + r // 3), (max(r // 3, 1), max(r // 6, 1)), 0, 0, 180, (50, 50, 50, 255), 3)  # Mouth

    if not cv2.imwrite(str(path), image):
        raise OSError(f"Could not write placeholder avatar to {path}")

    logger.info(f"Created placeholder avatar: {path}")
    return path
