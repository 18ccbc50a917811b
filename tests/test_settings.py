"""
Unit tests for configuration loading.
"""

import os
import unittest
from unittest.mock import patch, MagicMock

from config.settings import AppConfig, ConfigManager


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager."""

    def setUp(self):
        self.manager = ConfigManager()

        # No .env file or secrets file during tests
        dotenv_patcher = patch('config.settings.load_dotenv')
        dotenv_patcher.start()
        self.addCleanup(dotenv_patcher.stop)

        self.mock_st = MagicMock()
        self.mock_st.secrets = {}
        st_patcher = patch('config.settings.st', self.mock_st)
        st_patcher.start()
        self.addCleanup(st_patcher.stop)

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        config = self.manager.load_config()

        self.assertEqual(config, AppConfig())
        self.assertEqual(config.commission_rate, 0.20)
        self.assertFalse(config.clamp_progress)
        self.assertEqual(config.supported_file_formats, ['.xlsx', '.xls', '.csv'])

    @patch.dict(os.environ, {
        'PLAYLIST_FILE': 'data/pl.csv',
        'COMMISSION_RATE': '0.15',
        'CLAMP_PROGRESS': 'yes',
        'RETRY_ATTEMPTS': 'not-a-number',
        'DEFAULT_DURATION_DAYS': '30',
    }, clear=True)
    def test_environment_overrides(self):
        config = self.manager.load_config()

        self.assertEqual(config.playlist_file, 'data/pl.csv')
        self.assertEqual(config.commission_rate, 0.15)
        self.assertTrue(config.clamp_progress)
        self.assertEqual(config.retry_attempts, 3)
        self.assertEqual(self.manager.get_default_duration(), 30)

    @patch.dict(os.environ, {'COMMISSION_RATE': '0.1'}, clear=True)
    def test_secrets_take_precedence(self):
        self.mock_st.secrets = {'COMMISSION_RATE': 0.25}
        self.assertEqual(self.manager.get_commission_rate(), 0.25)

    @patch.dict(os.environ, {'COMMISSION_RATE': '1.5'}, clear=True)
    def test_commission_rate_out_of_range(self):
        with self.assertRaises(ValueError):
            self.manager.load_config()

    @patch.dict(os.environ, {}, clear=True)
    def test_config_cached_until_reset(self):
        first = self.manager.load_config()
        self.assertIs(self.manager.load_config(), first)

        self.manager.reset()
        self.assertIsNot(self.manager.load_config(), first)

    @patch.dict(os.environ, {}, clear=True)
    def test_file_format(self):
        self.assertTrue(self.manager.is_valid_file_format('Playlists.XLSX'))
        self.assertTrue(self.manager.is_valid_file_format('vendors.csv'))
        self.assertFalse(self.manager.is_valid_file_format('vendors.json'))


if __name__ == '__main__':
    unittest.main()
