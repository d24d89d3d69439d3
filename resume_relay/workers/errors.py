class BrowserError(Exception):
    """Raised when the parser page cannot be driven to a result."""


class TableNotFoundError(BrowserError):
    """Raised when no result table is present on the rendered page."""
