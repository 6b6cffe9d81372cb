"""
Sheet-specific exceptions.

Custom exception classes for staff sheet configuration and sync errors.
"""


class SheetError(Exception):
    """Base exception for staff sheet errors."""
    pass


class SheetConfigurationError(SheetError):
    """
    Raised when the column layout file is missing or invalid.

    Examples:
        - staff_columns.json not found
        - Column keys out of step with StaffRecord fields
        - Duplicate headers
    """
    pass


class SheetSyncError(SheetError):
    """
    Raised when the remote sheet cannot be read.

    Callers treat every subclass as a single connectivity failure.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        super().__init__(message)


class SheetConnectionError(SheetSyncError):
    """Raised when the HTTP call to the sheet web app fails."""
    pass


class SheetFormatError(SheetSyncError):
    """Raised when the sheet web app answers with something other than a JSON array of rows."""
    pass
