"""
Exceptions raised by the Google Drive search tools
"""

from typing import Any


class DriveToolError(Exception):
    """Base class for errors raised by this package"""


class DriveAuthError(DriveToolError):
    """Raised when Drive credentials cannot be built"""


class DriveSearchError(DriveToolError):
    """Raised when every search variation failed"""


def http_status(error: Any):
    """Return the HTTP status carried by a Drive API error, if any."""
    resp = getattr(error, 'resp', None)
    status = getattr(resp, 'status', None)
    if status is None:
        status = getattr(error, 'status_code', None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def format_google_api_error(error: Exception) -> str:
    """Render an exception from the Drive client as a single readable line.

    ``HttpError`` carries the API's own reason and status code, anything
    else is reported with its message.
    """
    status = http_status(error)
    if status is not None:
        reason = getattr(error, 'reason', None)
        return f"Google API Error: {reason or error} (Code: {status})"

    message = str(error)
    if message:
        return f"Google Drive Error: {message}"
    return f"Unknown Google Drive Error: {error!r}"
