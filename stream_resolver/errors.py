# stream_resolver/errors.py

"""
Exception types raised by the providers, the debrid client and the resolver.

Provider failures never leave the aggregator; everything under
``DebridResolutionError`` is surfaced to the caller as a distinct outcome.
"""

from __future__ import annotations


class StreamResolverError(Exception):
    """Base class for every error raised by this package."""


class ProviderUnavailable(StreamResolverError):
    """A single provider could not be queried or its payload could not be read."""

    def __init__(self, provider: str, query: str, reason: str) -> None:
        self.provider = provider
        self.query = query
        self.reason = reason
        super().__init__(f"{provider} unavailable for '{query}': {reason}")


# --- Debrid service ---


class DebridError(StreamResolverError):
    """Base class for debrid client and resolution errors."""


class DebridAPIError(DebridError):
    """The debrid API answered with a non-2xx status or an unreadable body."""

    def __init__(
        self, status_code: int, error: str = "unknown_error", error_code: int | None = None
    ) -> None:
        self.status_code = status_code
        self.error = error
        self.error_code = error_code
        code = error_code if error_code is not None else status_code
        super().__init__(f"Debrid API error: {error} ({code})")


class DebridNotFound(DebridAPIError):
    """404 from the debrid API; during polling this means 'not ready yet'."""


class DebridResolutionError(DebridError):
    """A resolution attempt ended without a playable URL."""


class DebridSubmitFailed(DebridResolutionError):
    pass


class DebridPollFailed(DebridResolutionError):
    def __init__(self, status: str, message: str | None = None) -> None:
        self.status = status
        super().__init__(message or f"Debrid job ended with status '{status}'")


class DebridTimeout(DebridResolutionError):
    def __init__(self, elapsed: float, timeout: float) -> None:
        self.elapsed = elapsed
        self.timeout = timeout
        super().__init__(
            f"Debrid job not ready after {elapsed:.1f}s (timeout {timeout:.0f}s)"
        )


class DebridNoFiles(DebridResolutionError):
    """The job finished but contains nothing that can be downloaded."""


class UnplayableFile(DebridResolutionError):
    """The only content available is a disc image, archive or other non-video file."""

    def __init__(self, filename: str, extension: str, category: str) -> None:
        self.filename = filename
        self.extension = extension
        self.category = category
        super().__init__(f"'{filename}' is not playable ({category}: {extension})")


class DebridUnrestrictFailed(DebridResolutionError):
    """The service refused to turn the internal link into a download URL."""
