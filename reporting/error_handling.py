# ============================================================================
#  File:    error_handling.py
#  Purpose: Reporting error codes, standardized messages and the exception
#           hierarchy shared by the notification subsystem.
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
from datetime import datetime
from functools import wraps
from typing import Any, Dict, Optional

from loguru import logger
#
# ============================================================================
# SECTION 2: Error Codes and Messages
# ============================================================================
ERROR_CODES = {
    'R001': 'Discord transport failure',
    'R002': 'Discord reporting not configured',
    'R003': 'Malformed error text',
    'R004': 'Reporting helper misuse',
    'R005': 'Invalid test configuration',
    'R999': 'Unknown error'
}
#
# ============================================================================
# SECTION 3: Error Handling Utilities
# ============================================================================
# Function 3.1: get_error_message
# Purpose: Formats a standardized error message from an error code.
# ============================================================================
#
def get_error_message(code, detail=None):
    """Formats a standardized error message from an error code."""
    message = ERROR_CODES.get(code, ERROR_CODES['R999'])
    if detail:
        return f"[{code}] {message}: {str(detail)}"
    return f"[{code}] {message}"
#
# ============================================================================
# SECTION 4: Exception Hierarchy
# ============================================================================
# Class 4.1: ReportingError
# Purpose: Base error carrying an error code and optional context.
# ============================================================================
#
class ReportingError(Exception):

    error_type = 'R999'

    def __init__(self, detail: str = "", context: Optional[Dict[str, Any]] = None):
        super().__init__(get_error_message(self.error_type, detail))
        self.detail = detail
        self.context = context or {}
        self.timestamp = datetime.now()


class TransportError(ReportingError):
    """Discord rejected the request or could not be reached."""

    error_type = 'R001'

    def __init__(self, detail: str = "", status_code: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(detail, context)
        self.status_code = status_code


class MisuseError(ReportingError):
    """
    Raised when test code calls a reporting helper incorrectly (no active
    test, empty failure reason). These are defects in the calling test and
    are surfaced immediately rather than absorbed.
    """

    error_type = 'R004'


class ConfigError(ReportingError):
    error_type = 'R005'
#
# ============================================================================
# SECTION 5: Best-effort Decorator
# ============================================================================
# Function 5.1: best_effort
# Purpose: Wraps an async collaborator call so transport and other
#          environmental failures are logged and turned into a default value.
#          MisuseError always propagates.
# ============================================================================
#
def best_effort(default=None, action: str = ""):

    def decorator(func):
        label = action or func.__name__

        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except MisuseError:
                raise
            except ReportingError as e:
                logger.warning(f"{label} failed: {e}")
            except Exception as e:
                logger.warning(f"{label} failed: {get_error_message('R999', e)}")
            return default

        return wrapper

    return decorator
#
#
## End Script
