"""
Failure classification and user feedback for campaign workflows.

Exceptions raised while loading the playlist directory, allocating streams
or touching the campaign store are mapped to ErrorInfo records. The
controller turns those into notification dictionaries and retries the
transient ones.
"""

import json
import logging
import time
from collections import Counter
from typing import Dict, Any, Optional, Callable, Tuple
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from data.repository import CampaignNotFound
from .stream_allocator import InvalidInput
from .allocation_validator import ValidationError

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Where a failure came from."""
    ALLOCATION_ERROR = "allocation_error"
    DATA_ERROR = "data_error"
    VALIDATION_ERROR = "validation_error"
    NETWORK_ERROR = "network_error"
    SYSTEM_ERROR = "system_error"
    USER_ERROR = "user_error"


TITLES = {
    ErrorCategory.ALLOCATION_ERROR: "Allocation Error",
    ErrorCategory.DATA_ERROR: "Data Error",
    ErrorCategory.VALIDATION_ERROR: "Validation Error",
    ErrorCategory.NETWORK_ERROR: "Connection Error",
    ErrorCategory.SYSTEM_ERROR: "System Error",
    ErrorCategory.USER_ERROR: "Input Error",
}

NOTIFICATION_TYPES = {
    ErrorSeverity.INFO: "info",
    ErrorSeverity.WARNING: "warning",
    ErrorSeverity.ERROR: "error",
    ErrorSeverity.CRITICAL: "error",
}


@dataclass
class ErrorInfo:
    """A classified failure with the text shown to the user."""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    user_message: str
    technical_details: Optional[str] = None
    suggested_action: Optional[str] = None
    retry_possible: bool = False
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class RetryConfig:
    """How often and how patiently to retry a transient failure."""
    max_attempts: int = 3
    base_delay: float = 1.0
    exponential_backoff: bool = True
    max_delay: float = 60.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based attempt fails."""
        if not self.exponential_backoff:
            return self.base_delay
        return min(self.base_delay * (2 ** attempt), self.max_delay)


class ErrorHandler:
    """
    Classifies workflow failures, retries transient ones and keeps a bounded
    history for the status page.
    """

    def __init__(self, history_limit: int = 100):
        self.error_history = []
        self.history_limit = history_limit

    def handle_allocation_error(self, error: Exception, context: str = "") -> ErrorInfo:
        """Malformed allocation requests: goal, duration or capacities out of range."""
        return ErrorInfo(
            category=ErrorCategory.ALLOCATION_ERROR,
            severity=ErrorSeverity.WARNING,
            message=f"Invalid allocation input in {context}: {error}",
            user_message=str(error),
            suggested_action="Check the stream goal, campaign duration and vendor caps.",
        )

    def handle_data_error(self, error: Exception, context: str = "") -> ErrorInfo:
        """
        Classify failures reading the playlist and vendor sheets or the campaign store.

        Args:
            error: The exception raised while reading
            context: Operation that was running

        Returns:
            ErrorInfo for a missing, unreadable or malformed source
        """
        text = str(error).lower()

        if isinstance(error, FileNotFoundError) or "not found" in text or "no such file" in text:
            return ErrorInfo(
                category=ErrorCategory.DATA_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Missing data source in {context}: {error}",
                user_message="Playlist or vendor data is missing.",
                suggested_action="Upload the playlist and vendor sheets before building campaigns.",
            )

        if isinstance(error, PermissionError) or "permission denied" in text:
            return ErrorInfo(
                category=ErrorCategory.DATA_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Unreadable data source in {context}: {error}",
                user_message="The planner is not allowed to read the data files.",
                suggested_action="Fix the file permissions on the data directory.",
            )

        if isinstance(error, json.JSONDecodeError):
            return ErrorInfo(
                category=ErrorCategory.DATA_ERROR,
                severity=ErrorSeverity.CRITICAL,
                message=f"Corrupt campaign store in {context}: {error}",
                user_message="The campaign store could not be read.",
                technical_details=str(error),
                suggested_action="Restore the campaign store from a backup.",
            )

        if "missing column" in text or "malformed" in text or "corrupt" in text:
            return ErrorInfo(
                category=ErrorCategory.DATA_ERROR,
                severity=ErrorSeverity.ERROR,
                message=f"Bad sheet layout in {context}: {error}",
                user_message="The playlist or vendor sheet is not in the expected format.",
                suggested_action="Re-upload the sheet with the required columns.",
            )

        return ErrorInfo(
            category=ErrorCategory.DATA_ERROR,
            severity=ErrorSeverity.ERROR,
            message=f"Data error in {context}: {error}",
            user_message="Playlist or vendor data could not be loaded.",
            technical_details=str(error),
            suggested_action="Check the uploaded sheets and try again.",
        )

    def handle_network_error(self, error: Exception, context: str = "") -> ErrorInfo:
        timed_out = isinstance(error, TimeoutError) or "timeout" in str(error).lower()
        return ErrorInfo(
            category=ErrorCategory.NETWORK_ERROR,
            severity=ErrorSeverity.WARNING if timed_out else ErrorSeverity.ERROR,
            message=f"{'Timeout' if timed_out else 'Connection failure'} in {context}: {error}",
            user_message="The data store did not respond in time." if timed_out
            else "The data store could not be reached.",
            technical_details=None if timed_out else str(error),
            suggested_action="Check the connection and try again.",
            retry_possible=True,
        )

    def handle_validation_error(self, error: Exception, context: str = "") -> ErrorInfo:
        return ErrorInfo(
            category=ErrorCategory.VALIDATION_ERROR,
            severity=ErrorSeverity.WARNING,
            message=f"Rejected in {context}: {error}",
            user_message=str(error),
            suggested_action="Fix the campaign fields and build again.",
        )

    def handle_missing_campaign(self, error: CampaignNotFound, context: str = "") -> ErrorInfo:
        campaign_id = error.args[0] if error.args else "?"
        return ErrorInfo(
            category=ErrorCategory.USER_ERROR,
            severity=ErrorSeverity.WARNING,
            message=f"Unknown campaign {campaign_id} in {context}",
            user_message=f"Campaign {campaign_id} does not exist.",
            suggested_action="Reload the campaign list.",
        )

    def retry_with_backoff(self, func: Callable, config: Optional[RetryConfig] = None,
                           context: str = "") -> Tuple[bool, Any, Optional[ErrorInfo]]:
        """
        Call func until it succeeds, the failure is not retryable or attempts run out.

        Args:
            func: Zero-argument callable
            config: Attempt count and delays
            context: Operation name used in logs and messages

        Returns:
            Tuple of (success, result, error_info)
        """
        config = config or RetryConfig()
        error_info = None

        for attempt in range(config.max_attempts):
            try:
                return True, func(), None
            except Exception as e:
                error_info = self.classify_error(e, context)
                logger.warning(f"{context} failed (attempt {attempt + 1} of {config.max_attempts}): {e}")

                if not error_info.retry_possible or attempt + 1 >= config.max_attempts:
                    break

                delay = config.delay_for(attempt)
                logger.info(f"Retrying {context} in {delay} seconds")
                time.sleep(delay)

        return False, None, error_info

    def classify_error(self, error: Exception, context: str = "") -> ErrorInfo:
        """
        Map an exception to an ErrorInfo.

        Known exception types are matched first; anything else is matched on
        keywords in its message and falls back to a retryable system error.
        """
        if isinstance(error, InvalidInput):
            return self.handle_allocation_error(error, context)
        if isinstance(error, ValidationError):
            return self.handle_validation_error(error, context)
        if isinstance(error, CampaignNotFound):
            return self.handle_missing_campaign(error, context)
        if isinstance(error, (FileNotFoundError, PermissionError, json.JSONDecodeError)):
            return self.handle_data_error(error, context)
        if isinstance(error, (ConnectionError, TimeoutError)):
            return self.handle_network_error(error, context)

        text = str(error).lower()
        if any(word in text for word in ("file", "sheet", "column", "data")):
            return self.handle_data_error(error, context)
        if any(word in text for word in ("network", "connection", "timeout")):
            return self.handle_network_error(error, context)

        return ErrorInfo(
            category=ErrorCategory.SYSTEM_ERROR,
            severity=ErrorSeverity.ERROR,
            message=f"Unexpected failure in {context}: {error}",
            user_message="Something went wrong while processing the campaign.",
            technical_details=str(error),
            suggested_action="Try again and report the details if it keeps failing.",
            retry_possible=True,
        )

    def create_user_notification(self, error_info: ErrorInfo) -> Dict[str, Any]:
        """Notification payload for the caller to display."""
        notification = {
            'type': NOTIFICATION_TYPES[error_info.severity],
            'title': TITLES.get(error_info.category, "Error"),
            'message': error_info.user_message,
            'category': error_info.category.value,
            'timestamp': error_info.timestamp.isoformat(),
            'dismissible': error_info.severity in (ErrorSeverity.INFO, ErrorSeverity.WARNING),
            'retry_possible': error_info.retry_possible,
        }

        if error_info.suggested_action:
            notification['action'] = error_info.suggested_action
        # Only critical failures expose internals
        if error_info.severity == ErrorSeverity.CRITICAL and error_info.technical_details:
            notification['technical_details'] = error_info.technical_details

        return notification

    def log_error(self, error_info: ErrorInfo, context: str = ""):
        """Keep the error in the bounded history and log it at its severity."""
        self.error_history.append(error_info)
        del self.error_history[:-self.history_limit]

        level = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
        }.get(error_info.severity, logging.INFO)
        logger.log(level, f"{context}: {error_info.message}")

    def get_error_statistics(self) -> Dict[str, Any]:
        """Counts of logged errors, with a breakdown of the last 24 hours."""
        if not self.error_history:
            return {'total_errors': 0}

        cutoff = datetime.now() - timedelta(hours=24)
        recent = [e for e in self.error_history if e.timestamp > cutoff]

        return {
            'total_errors': len(self.error_history),
            'recent_errors_24h': len(recent),
            'category_breakdown': dict(Counter(e.category.value for e in recent)),
            'severity_breakdown': dict(Counter(e.severity.value for e in recent)),
        }


# Shared handler used by the controller
error_handler = ErrorHandler()
