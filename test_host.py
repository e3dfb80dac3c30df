#!/usr/bin/env python3
"""Tests for the in-memory graphics surface and source registration."""

import unittest
from unittest.mock import Mock

import numpy as np

from pingtuber.errors import RegistrationError
from pingtuber.host import (
    Capability,
    ColorFormat,
    LoadContext,
    MemoryGraphics,
    Module,
    Source,
    SourceInfoBuilder,
    SourceRegistry,
    implements,
)
from pingtuber.source import StaticSource, TuberModule, TuberSource


class TestMemoryGraphics(unittest.TestCase):

    def setUp(self):
        self.graphics = MemoryGraphics(8, 8)
        self.texture = self.graphics.allocate(2, 2)

    def test_upload_packed_rows(self):
        pixels = bytes(range(16))
        self.graphics.upload(self.texture, pixels, 8)

        stored = self.graphics.texture_pixels(self.texture)
        self.assertEqual(stored.tobytes(), pixels)
        self.assertEqual(self.graphics.upload_count(self.texture), 1)

    def test_upload_padded_rows(self):
        rows = [bytes([1] * 8) + bytes([99] * 4), bytes([2] * 8) + bytes([99] * 4)]
        self.graphics.upload(self.texture, b"".join(rows), 12)

        stored = self.graphics.texture_pixels(self.texture)
        self.assertTrue(np.all(stored[0] == 1))
        self.assertTrue(np.all(stored[1] == 2))

    def test_upload_numpy_array(self):
        pixels = np.full((2, 2, 4), 42, dtype=np.uint8)
        self.graphics.upload(self.texture, pixels, 8)
        self.assertTrue(np.all(self.graphics.texture_pixels(self.texture) == 42))

    def test_upload_wrong_size(self):
        with self.assertRaises(ValueError):
            self.graphics.upload(self.texture, bytes(15), 8)

    def test_upload_narrow_stride(self):
        with self.assertRaises(ValueError):
            self.graphics.upload(self.texture, bytes(12), 6)

    def test_unknown_handle(self):
        with self.assertRaises(KeyError):
            self.graphics.upload(999, bytes(16), 8)
        with self.assertRaises(KeyError):
            self.graphics.draw(999, 0, 0, 2, 2)

    def test_unsupported_format(self):
        with self.assertRaises(ValueError):
            self.graphics.allocate(2, 2, ColorFormat.BGRA)

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            self.graphics.allocate(0, 2)

    def test_draw_at_position(self):
        self.graphics.upload(self.texture, bytes([255, 0, 0, 255] * 4), 8)
        self.graphics.draw(self.texture, 3, 4, 2, 2)

        frame = self.graphics.frame()
        self.assertEqual(tuple(frame[4, 3]), (255, 0, 0, 255))
        self.assertEqual(tuple(frame[5, 4]), (255, 0, 0, 255))
        self.assertEqual(tuple(frame[3, 3]), (0, 0, 0, 0))
        self.assertEqual(self.graphics.draw_count, 1)

    def test_draw_scaled(self):
        self.graphics.upload(self.texture, bytes([0, 255, 0, 255] * 4), 8)
        self.graphics.draw(self.texture, 0, 0, 8, 8)
        self.assertTrue(np.all(self.graphics.frame()[..., 1] == 255))

    def test_draw_flipped(self):
        top = [10, 10, 10, 255] * 2
        bottom = [20, 20, 20, 255] * 2
        self.graphics.upload(self.texture, bytes(top + bottom), 8)
        self.graphics.draw(self.texture, 0, 0, 2, 2, flip=True)

        frame = self.graphics.frame()
        self.assertEqual(frame[0, 0, 0], 20)
        self.assertEqual(frame[1, 0, 0], 10)

    def test_draw_clipped(self):
        self.graphics.upload(self.texture, bytes([255] * 16), 8)
        self.graphics.draw(self.texture, -1, 7, 2, 2)
        self.graphics.draw(self.texture, 50, 50, 2, 2)

        frame = self.graphics.frame()
        self.assertEqual(tuple(frame[7, 0]), (255, 255, 255, 255))
        self.assertEqual(int(frame[..., 3].astype(bool).sum()), 1)

    def test_transparent_pixels_keep_background(self):
        self.graphics.clear((5, 6, 7, 255))
        self.graphics.upload(self.texture, bytes([200, 200, 200, 0] * 4), 8)
        self.graphics.draw(self.texture, 0, 0, 2, 2)
        self.assertEqual(tuple(self.graphics.frame()[0, 0]), (5, 6, 7, 255))

    def test_release(self):
        self.graphics.release(self.texture)
        self.assertFalse(self.graphics.is_allocated(self.texture))


# =============================================================================
# REGISTRATION
# =============================================================================

class RenderOnlySource(Source):

    @classmethod
    def get_id(cls):
        return "render_only"

    @classmethod
    def create(cls, settings, graphics):
        return cls()

    def __init__(self):
        self.rendered = 0
        self.destroyed = False

    def render(self):
        self.rendered += 1

    def destroy(self):
        self.destroyed = True


class NoIdSource(Source):

    def render(self):
        pass


class TestRegistration(unittest.TestCase):

    def test_enabling_unimplemented_capability_fails(self):
        builder = SourceInfoBuilder(RenderOnlySource).enable_video_render().enable_video_tick()
        with self.assertRaises(RegistrationError) as ctx:
            builder.build()
        self.assertIn("tick", str(ctx.exception))

    def test_implemented_capabilities_build(self):
        info = SourceInfoBuilder(RenderOnlySource).enable_video_render().build()
        self.assertEqual(info.id, "render_only")
        self.assertTrue(info.supports(Capability.VIDEO_RENDER))
        self.assertFalse(info.supports(Capability.VIDEO_TICK))

    def test_missing_id_fails(self):
        with self.assertRaises(RegistrationError):
            SourceInfoBuilder(NoIdSource).enable_video_render().build()

    def test_duplicate_id_fails(self):
        context = LoadContext()
        info = context.create_source_builder(RenderOnlySource).build()
        context.register_source(info)
        with self.assertRaises(RegistrationError):
            context.register_source(info)

    def test_implements(self):
        self.assertTrue(implements(TuberSource, Capability.VIDEO_TICK))
        self.assertTrue(implements(TuberSource, Capability.GET_NAME))
        self.assertFalse(implements(RenderOnlySource, Capability.GET_WIDTH))

    def test_tuber_module(self):
        context = LoadContext()
        self.assertTrue(TuberModule().load(context))

        self.assertEqual(set(context.sources), {"tuber_source", "tuber_static_source"})
        tuber = context.sources["tuber_source"]
        self.assertEqual(tuber.capabilities, frozenset(Capability))
        self.assertFalse(context.sources["tuber_static_source"].supports(Capability.UPDATE))

        self.assertEqual(TuberModule.name(), "Ping-tub")
        self.assertEqual(TuberModule.description(), "Png-tuber OBS integration")


class RenderOnlyModule(Module):

    def load(self, load_context):
        info = load_context.create_source_builder(RenderOnlySource).enable_video_render().build()
        load_context.register_source(info)
        return True


class FailingModule(Module):

    def load(self, load_context):
        return False


class TestSourceRegistry(unittest.TestCase):

    def setUp(self):
        self.registry = SourceRegistry(MemoryGraphics(16, 16))

    def test_load_and_names(self):
        self.registry.load_module(TuberModule())
        self.assertEqual(self.registry.display_name("tuber_source"), "Ping-Tuber Source")
        self.assertIn("tuber_static_source", self.registry.source_ids)

    def test_failed_module(self):
        with self.assertRaises(RegistrationError):
            self.registry.load_module(FailingModule())

    def test_duplicate_module(self):
        self.registry.load_module(TuberModule())
        with self.assertRaises(RegistrationError):
            self.registry.load_module(TuberModule())

    def test_unknown_source(self):
        with self.assertRaises(KeyError):
            self.registry.create("nope")

    def test_only_enabled_capabilities_are_driven(self):
        self.registry.load_module(RenderOnlyModule())

        instance = self.registry.create("render_only")
        instance.tick = Mock()
        self.registry.tick(0.016)
        self.registry.render()

        instance.tick.assert_not_called()
        self.assertEqual(instance.rendered, 1)
        self.assertEqual(self.registry.display_name("render_only"), "render_only")

        self.registry.destroy(instance)
        self.assertTrue(instance.destroyed)
        self.assertEqual(self.registry.instances, [])

    def test_static_source(self):
        graphics = MemoryGraphics(StaticSource.WIDTH, StaticSource.HEIGHT)
        registry = SourceRegistry(graphics)
        registry.load_module(TuberModule())

        source = registry.create("tuber_static_source")
        registry.tick(0.016)
        registry.render()

        self.assertTrue(np.all(graphics.frame() == 255))
        self.assertEqual(source.get_width(), 512)
        self.assertEqual(graphics.upload_count(source.texture), 1)

        registry.destroy_all()
        self.assertIsNone(source.texture)


if __name__ == "__main__":
    unittest.main(verbosity=2)
