import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from goldpulse.config.settings import Settings, parse_relays


class TestSettings(unittest.TestCase):
    def test_defaults_without_env(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()

        self.assertEqual(len(settings.RELAYS), 4)
        self.assertEqual(settings.RELAYS[0].shape, "enveloped")
        self.assertEqual(settings.RELAYS[0].url_template, "https://api.allorigins.win/get?url={url}")
        self.assertEqual(settings.RELAYS[3].shape, "raw")
        self.assertEqual(settings.REQUEST_INTERVAL_SEC, 0.1)
        self.assertEqual(settings.QUOTE_TIMEOUT_SEC, 10.0)
        self.assertEqual(settings.QUOTE_CACHE_TTL_SEC, 60.0)
        self.assertEqual(settings.HISTORY_CACHE_TTL_SEC, 300.0)
        self.assertEqual(settings.BATCH_WORKERS, 1)
        self.assertIsNone(settings.SESSION_STORAGE_PATH)

    def test_env_overrides(self):
        env = {
            "GOLDPULSE_RELAYS": "raw|https://one.test/?{url}, enveloped|https://two.test/get?url={url}",
            "GOLDPULSE_REQUEST_INTERVAL_SEC": "0.25",
            "GOLDPULSE_BATCH_WORKERS": "3",
            "GOLDPULSE_SESSION_STORAGE_PATH": "/tmp/goldpulse-session.json",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        self.assertEqual([r.name for r in settings.RELAYS], ["relay-0", "relay-1"])
        self.assertEqual([r.shape for r in settings.RELAYS], ["raw", "enveloped"])
        self.assertEqual(settings.REQUEST_INTERVAL_SEC, 0.25)
        self.assertEqual(settings.BATCH_WORKERS, 3)
        self.assertEqual(settings.SESSION_STORAGE_PATH, "/tmp/goldpulse-session.json")

    def test_relay_without_shape_defaults_to_raw(self):
        relays = parse_relays("https://plain.test/?url={url}")

        self.assertEqual(relays[0].shape, "raw")
        self.assertEqual(relays[0].url_template, "https://plain.test/?url={url}")

    def test_unknown_relay_shape_fails_validation(self):
        with self.assertRaises(ValidationError):
            parse_relays("xml|https://odd.test/?{url}")

    def test_invalid_number_fails_validation(self):
        with patch.dict(os.environ, {"GOLDPULSE_QUOTE_TIMEOUT_SEC": "soon"}, clear=True):
            with self.assertRaises(ValidationError):
                Settings.from_env()


if __name__ == "__main__":
    unittest.main()
