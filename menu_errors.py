"""Errors raised while fetching, parsing and serving the bistro menu."""


class MenuError(Exception):
    pass


class FormatError(MenuError):
    """The document does not match the expected menu template."""


class ExternalToolError(MenuError):
    """Text extraction, rendering or OCR failed or returned unusable output."""


class NetworkError(MenuError):
    """Fetching failed, or the menu site listed an unexpected number of documents."""


class DateRangeError(MenuError):
    """Requested date is before today or more than a week ahead."""


class NotYetPublishedError(MenuError):
    """Date is inside the refresh window but no menu covers it yet."""


class RefreshCancelledError(MenuError):
    pass
