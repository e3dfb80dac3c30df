#!/usr/bin/env python3
"""Basic smoke tests for core module imports."""

import importlib
import unittest


class TestSmoke(unittest.TestCase):
    """Validate critical modules import without immediate runtime errors."""

    def test_import_core_modules(self):
        modules = [
            "main",
            "pingtuber",
            "pingtuber.config",
            "pingtuber.errors",
            "pingtuber.face",
            "pingtuber.host",
            "pingtuber.listener",
            "pingtuber.presenter",
            "pingtuber.preview",
            "pingtuber.source",
        ]
        for module_name in modules:
            with self.subTest(module=module_name):
                module = importlib.import_module(module_name)
                self.assertIsNotNone(module)


if __name__ == "__main__":
    unittest.main(verbosity=2)
