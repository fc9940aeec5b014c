from __future__ import annotations

from typing import Optional


class UpstreamError(RuntimeError):
    """Base for every failure talking to the market-data provider."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamTimeout(UpstreamError):
    pass


class UpstreamHttpError(UpstreamError):
    def __init__(self, message: str, *, status_code: int, provider_message: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider_message = provider_message


class UpstreamMalformed(UpstreamError):
    pass


class NoStaleDataAvailable(UpstreamError):
    def __init__(self, key: str, cause: Exception):
        super().__init__(f"Refresh failed for '{key}' and no previous data is cached: {cause}")
        self.key = key
