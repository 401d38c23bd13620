"""Source adapter errors."""


class SourceError(Exception):
    """Base error raised inside a source adapter."""

    def __init__(self, message: str, response_text: str | None = None):
        super().__init__(message)
        self.response_text = response_text


class ParseError(SourceError):
    """The page or payload no longer has the expected structure.

    Never retried: a changed layout does not fix itself between attempts.
    """


class CredentialError(SourceError):
    """A required credential is missing or was rejected."""


class QuotaExhaustedError(SourceError):
    """The daily request budget of a rate-limited source is spent."""
