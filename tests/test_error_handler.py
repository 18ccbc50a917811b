"""
Unit tests for error classification, retry and notifications.
"""

import json
import unittest
from unittest.mock import patch, MagicMock

from business_logic.error_handler import (
    ErrorHandler, ErrorCategory, ErrorSeverity, RetryConfig
)
from business_logic.stream_allocator import InvalidInput
from business_logic.allocation_validator import ValidationError
from data.repository import CampaignNotFound


class TestErrorClassification(unittest.TestCase):
    """Test cases for classify_error."""

    def setUp(self):
        self.handler = ErrorHandler()

    def test_invalid_input(self):
        info = self.handler.classify_error(InvalidInput("Stream goal must be a positive integer"), "allocate")
        self.assertEqual(info.category, ErrorCategory.ALLOCATION_ERROR)
        self.assertFalse(info.retry_possible)
        self.assertIn("Stream goal", info.user_message)

    def test_validation_error(self):
        info = self.handler.classify_error(ValidationError("Vendor allocation exceeds cap"))
        self.assertEqual(info.category, ErrorCategory.VALIDATION_ERROR)

    def test_missing_file(self):
        info = self.handler.classify_error(FileNotFoundError("Sheet file not found: playlists.xlsx"))
        self.assertEqual(info.category, ErrorCategory.DATA_ERROR)
        self.assertEqual(info.user_message, "Playlist or vendor data is missing.")

    def test_malformed_sheet(self):
        info = self.handler.classify_error(ValueError("Missing column(s) in vendors.csv: name"))
        self.assertEqual(info.category, ErrorCategory.DATA_ERROR)
        self.assertIn("expected format", info.user_message)

    def test_network(self):
        info = self.handler.classify_error(ConnectionError("connection reset"))
        self.assertEqual(info.category, ErrorCategory.NETWORK_ERROR)
        self.assertTrue(info.retry_possible)

        info = self.handler.classify_error(TimeoutError("timeout reading store"))
        self.assertEqual(info.severity, ErrorSeverity.WARNING)

    def test_missing_campaign(self):
        info = self.handler.classify_error(CampaignNotFound('C42'), "summary")
        self.assertEqual(info.category, ErrorCategory.USER_ERROR)
        self.assertEqual(info.user_message, "Campaign C42 does not exist.")

    def test_corrupt_store(self):
        info = self.handler.classify_error(json.JSONDecodeError("Expecting value", "", 0))
        self.assertEqual(info.category, ErrorCategory.DATA_ERROR)
        self.assertEqual(info.severity, ErrorSeverity.CRITICAL)
        self.assertIn('technical_details', self.handler.create_user_notification(info))

    def test_unexpected(self):
        info = self.handler.classify_error(RuntimeError("boom"))
        self.assertEqual(info.category, ErrorCategory.SYSTEM_ERROR)
        self.assertTrue(info.retry_possible)


class TestRetryWithBackoff(unittest.TestCase):
    """Test cases for retry_with_backoff."""

    def setUp(self):
        self.handler = ErrorHandler()

    @patch('business_logic.error_handler.time.sleep')
    def test_succeeds_after_transient_failure(self, mock_sleep):
        func = MagicMock(side_effect=[ConnectionError("connection lost"), 'ok'])

        success, result, error_info = self.handler.retry_with_backoff(
            func, RetryConfig(max_attempts=3, base_delay=0.5), "store"
        )

        self.assertTrue(success)
        self.assertEqual(result, 'ok')
        self.assertIsNone(error_info)
        mock_sleep.assert_called_once_with(0.5)

    @patch('business_logic.error_handler.time.sleep')
    def test_exponential_delays(self, mock_sleep):
        func = MagicMock(side_effect=ConnectionError("connection lost"))

        success, result, error_info = self.handler.retry_with_backoff(
            func, RetryConfig(max_attempts=3, base_delay=1.0), "store"
        )

        self.assertFalse(success)
        self.assertIsNone(result)
        self.assertEqual(error_info.category, ErrorCategory.NETWORK_ERROR)
        self.assertEqual([c.args[0] for c in mock_sleep.call_args_list], [1.0, 2.0])
        self.assertEqual(func.call_count, 3)

    @patch('business_logic.error_handler.time.sleep')
    def test_non_retryable_stops_immediately(self, mock_sleep):
        func = MagicMock(side_effect=FileNotFoundError("Sheet file not found: x.xlsx"))

        success, _, error_info = self.handler.retry_with_backoff(func, RetryConfig(max_attempts=5))

        self.assertFalse(success)
        self.assertEqual(func.call_count, 1)
        self.assertEqual(error_info.category, ErrorCategory.DATA_ERROR)
        mock_sleep.assert_not_called()


class TestNotifications(unittest.TestCase):
    """Test cases for notifications and error history."""

    def setUp(self):
        self.handler = ErrorHandler(history_limit=2)

    def test_notification(self):
        info = self.handler.classify_error(InvalidInput("Duration must be a positive number of days"))
        notification = self.handler.create_user_notification(info)

        self.assertEqual(notification['type'], 'warning')
        self.assertEqual(notification['title'], 'Allocation Error')
        self.assertTrue(notification['dismissible'])
        self.assertIn('action', notification)

    def test_history_limit_and_statistics(self):
        self.assertEqual(self.handler.get_error_statistics(), {'total_errors': 0})

        for error in (RuntimeError("a"), RuntimeError("b"), InvalidInput("c")):
            self.handler.log_error(self.handler.classify_error(error), "test")

        stats = self.handler.get_error_statistics()
        self.assertEqual(stats['total_errors'], 2)
        self.assertEqual(stats['category_breakdown'], {'system_error': 1, 'allocation_error': 1})


if __name__ == '__main__':
    unittest.main()
