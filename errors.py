"""Error kinds raised by the rendition pipeline and photo operations."""


class PortfolioError(Exception):
    """Base error. ``public`` errors surface their message verbatim."""

    status_code = 500
    public = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortfolioError):
    """Bad input shape or bounds."""

    status_code = 400


class ConflictError(PortfolioError):
    """A name is already taken."""

    status_code = 409


class NotFoundError(PortfolioError):
    """Unknown photo, gallery or size."""

    status_code = 404

    def __init__(self, message: str, missing_ids=None):
        super().__init__(message)
        self.missing_ids = list(missing_ids or [])


class InvalidImageError(PortfolioError):
    """Uploaded bytes could not be decoded as an image."""

    status_code = 400


class NoSourceAvailableError(PortfolioError):
    """No existing rendition to derive a new size from."""

    status_code = 422


class PersistenceError(PortfolioError):
    """Database write failed."""

    status_code = 500
    public = False
