#!/usr/bin/env python3
"""Tests for the preview host loop."""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

import numpy as np

from pingtuber.face import ImageStateBank
from pingtuber.host import MemoryGraphics, SourceRegistry
from pingtuber.preview import DisplayWindow, PreviewHost, create_placeholder_avatar
from pingtuber.source import StaticSource, TuberModule


class TestPreviewHost(unittest.TestCase):

    def setUp(self):
        self.graphics = MemoryGraphics(StaticSource.WIDTH, StaticSource.HEIGHT)
        self.registry = SourceRegistry(self.graphics)
        self.registry.load_module(TuberModule())
        self.source = self.registry.create("tuber_static_source")

    def test_runs_frames_and_destroys_sources(self):
        frames = []
        host = PreviewHost(self.registry, self.graphics, fps=240,
                           on_frame=lambda index, frame: frames.append((index, frame)))
        host.run(max_frames=3)

        self.assertEqual([index for index, _ in frames], [0, 1, 2])
        self.assertTrue(np.all(frames[0][1] == 255))
        self.assertEqual(self.registry.instances, [])
        self.assertIsNone(self.source.texture)
        self.assertFalse(host.is_running)

    def test_display_close_stops_loop(self):
        display = Mock(spec=DisplayWindow)
        display.show.side_effect = [True, False]

        host = PreviewHost(self.registry, self.graphics, fps=240, display=display)
        host.run()

        self.assertEqual(host.frames, 2)
        display.close.assert_called_once()

    def test_stop(self):
        host = PreviewHost(self.registry, self.graphics, fps=240)
        host.on_frame = lambda index, frame: host.stop()
        host.run()
        self.assertEqual(host.frames, 1)

    def test_run_frame_clears_canvas(self):
        self.graphics.clear((1, 2, 3, 4))
        host = PreviewHost(self.registry, self.graphics)
        frame = host.run_frame(0.0)
        self.assertEqual(tuple(frame[0, 0]), (255, 255, 255, 255))

    def test_sleep_keeps_frame_rate(self):
        host = PreviewHost(self.registry, self.graphics, fps=10)
        with patch("pingtuber.preview.time.sleep") as sleep:
            host.run(max_frames=2)
        sleep.assert_called_once()
        self.assertLessEqual(sleep.call_args[0][0], 0.1)


class TestPlaceholder(unittest.TestCase):

    def test_placeholder_decodes(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = create_placeholder_avatar(Path(tmp) / "assets" / "avatar.png", 64, 64)
            bank = ImageStateBank.from_file(path, 32, 32)

        self.assertEqual((bank.width, bank.height), (32, 32))
        # Corners are transparent, the face is opaque
        self.assertEqual(bank.speaking_buffer[0, 0, 3], 0)
        self.assertEqual(bank.speaking_buffer[16, 16, 3], 255)


if __name__ == "__main__":
    unittest.main(verbosity=2)
