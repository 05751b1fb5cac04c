import unittest

from fairdraw.settings import (
    DEFAULT_PARALLEL_THRESHOLD,
    DISCLOSURE_WINNER_ONLY,
    MIN_SEED_BYTES,
    FairnessSettings,
)


class FairnessSettingsTestCase(unittest.TestCase):
    def test_defaults_from_empty_environment(self):
        settings = FairnessSettings.from_env({})
        self.assertEqual(settings.seed_bytes, MIN_SEED_BYTES)
        self.assertEqual(settings.disclosure, "full")
        self.assertEqual(settings.parallel_threshold, DEFAULT_PARALLEL_THRESHOLD)
        self.assertIsNone(settings.max_workers)

    def test_values_are_read_from_environment(self):
        settings = FairnessSettings.from_env(
            {
                "FAIRDRAW_SEED_BYTES": "64",
                "FAIRDRAW_DISCLOSURE": " Winner_Only ",
                "FAIRDRAW_PARALLEL_THRESHOLD": "500",
                "FAIRDRAW_MAX_WORKERS": "4",
            }
        )
        self.assertEqual(settings.seed_bytes, 64)
        self.assertEqual(settings.disclosure, DISCLOSURE_WINNER_ONLY)
        self.assertEqual(settings.parallel_threshold, 500)
        self.assertEqual(settings.max_workers, 4)

    def test_blank_values_fall_back_to_defaults(self):
        settings = FairnessSettings.from_env({"FAIRDRAW_MAX_WORKERS": "  "})
        self.assertIsNone(settings.max_workers)

    def test_invalid_values_raise(self):
        with self.assertRaises(ValueError):
            FairnessSettings.from_env({"FAIRDRAW_SEED_BYTES": "16"})
        with self.assertRaises(ValueError):
            FairnessSettings.from_env({"FAIRDRAW_SEED_BYTES": "lots"})
        with self.assertRaises(ValueError):
            FairnessSettings.from_env({"FAIRDRAW_DISCLOSURE": "partial"})
        with self.assertRaises(ValueError):
            FairnessSettings(parallel_threshold=0)
        with self.assertRaises(ValueError):
            FairnessSettings(max_workers=0)


if __name__ == "__main__":
    unittest.main()
