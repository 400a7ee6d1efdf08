"""Custom exception hierarchy for market-data-downloader."""

from typing import Any


class MarketDataError(Exception):
    """Base exception for all market-data-downloader errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(MarketDataError):
    """Invalid or missing configuration.

    Raised before any network call or file I/O. Should be treated as fatal.

    Context keys:
        field: str: the config field that failed validation
        value: Any: the invalid value (redacted for secrets)
    """


class NetworkError(MarketDataError):
    """The request could not be sent or the response could not be received.

    Policy: abort the run. No retry.

    Context keys:
        url: str: the redacted URL that was being fetched
        error: str: the underlying transport error
    """


class HttpStatusError(MarketDataError):
    """The provider answered with a non-2xx status.

    Policy: abort the run. No retry.

    Context keys:
        url: str: the redacted URL that was being fetched
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.status_code = status_code
        self.body = body


class EntitlementError(HttpStatusError):
    """HTTP 403: the API key's plan does not cover the requested data.

    The message carries remediation guidance (daily granularity, a different
    instrument, or an upgraded plan).
    """


class DecodeError(MarketDataError):
    """The response body is not a well-formed page envelope.

    Context keys:
        provider: str: the adapter that failed to decode
    """


class ProviderError(DecodeError):
    """The provider reported a logical error inside a 2xx payload.

    Context keys:
        provider: str: the adapter that received the payload
        code: int | None: provider error code, if any
    """


class ParseError(DecodeError):
    """A numeric or datetime field inside an otherwise valid page is malformed.

    Policy: fail the whole page. Bars from earlier pages stay on disk.

    Context keys:
        provider: str: the adapter that failed to parse
        field: str: the offending field
        value: Any: the raw value
    """


class OutputError(MarketDataError):
    """The sink could not create or write its output file.

    Context keys:
        path: str: the file that failed
    """
