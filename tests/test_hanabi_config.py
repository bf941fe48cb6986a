"""Unit tests for hanabi_config convention settings."""

import pathlib
import tempfile
import unittest

from hanabi_config import ConventionSettings, Level


class TestConventionSettings(unittest.TestCase):
    """Validation and serialisation of ConventionSettings."""

    def test_defaults(self) -> None:
        settings = ConventionSettings()
        self.assertEqual(settings.level, Level.BASIC_CM)
        self.assertEqual(settings.min_clue_value, 1.0)
        self.assertEqual(settings.bad_touch_penalty, 1.5)
        self.assertTrue(settings.two_saves)

    def test_int_level_is_coerced(self) -> None:
        settings = ConventionSettings(level=2)
        self.assertIs(settings.level, Level.FINESSE)
        self.assertGreaterEqual(settings.level, Level.FINESSE)

    def test_level_out_of_range(self) -> None:
        with self.assertRaises(ValueError):
            ConventionSettings(level=0)
        with self.assertRaises(ValueError):
            ConventionSettings(level=6)

    def test_negative_weight(self) -> None:
        with self.assertRaises(ValueError):
            ConventionSettings(playable_weight=-0.5)

    def test_locked_minimum_above_minimum(self) -> None:
        with self.assertRaises(ValueError):
            ConventionSettings(min_clue_value=1.0, locked_min_clue_value=2.0)

    def test_token_threshold(self) -> None:
        with self.assertRaises(ValueError):
            ConventionSettings(play_clue_token_threshold=0)

    def test_dict_round_trip(self) -> None:
        settings = ConventionSettings(level=Level.FIX, elim_weight=0.05)
        data = settings.to_dict()
        self.assertEqual(data["level"], 3)
        self.assertEqual(ConventionSettings.from_dict(data), settings)

    def test_from_dict_ignores_unknown_keys(self) -> None:
        settings = ConventionSettings.from_dict({"level": 1, "colour": "red"})
        self.assertEqual(settings.level, Level.BEGINNER)

    def test_save_and_load(self) -> None:
        settings = ConventionSettings(level=Level.INTERMEDIATE_FINESSES)
        with tempfile.TemporaryDirectory() as tmp:
            path = pathlib.Path(tmp) / "settings.json"
            settings.save(path)
            loaded = ConventionSettings.load(path)
        self.assertEqual(loaded, settings)
        self.assertIs(loaded.level, Level.INTERMEDIATE_FINESSES)


if __name__ == "__main__":
    unittest.main()
