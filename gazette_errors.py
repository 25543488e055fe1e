#!/usr/bin/env python3
"""
Failure taxonomy for gazette acquisition, extraction and enrichment.
"""

from typing import Optional


class GazetteError(Exception):
    """Base class for every error raised by the gazette monitor."""


class FetchFailure(GazetteError):
    kind = "fetch"

    def __init__(self, message: str, strategy: str = "", url: str = ""):
        super().__init__(message)
        self.strategy = strategy
        self.url = url


class TimeoutFailure(FetchFailure):
    kind = "timeout"


class NetworkFailure(FetchFailure):
    kind = "network"


class BlockedFailure(FetchFailure):
    kind = "blocked"

    def __init__(
        self,
        message: str,
        strategy: str = "",
        url: str = "",
        status_code: Optional[int] = None,
        indicator: str = "",
    ):
        super().__init__(message, strategy=strategy, url=url)
        self.status_code = status_code
        self.indicator = indicator


class MalformedContentFailure(FetchFailure):
    kind = "malformed"


class ExtractionFailure(GazetteError):
    """A single record element could not be turned into a GazetteRecord."""


class EnrichmentFailure(GazetteError):
    """PDF text or AI summary could not be produced for the newest record."""


class TerminalFailure(GazetteError):
    """Every acquisition strategy, including the search fallback, failed."""

    def __init__(self, message: str, failures=None):
        super().__init__(message)
        self.failures = list(failures or [])
