#!/usr/bin/env python3
"""
Strategy orchestrator for acquiring the gazette listing page.

One pass per call: cache, then each fetch strategy in priority order
(direct, proxied, rendered), then the web search fallback. A strategy's
output only counts once it passes the listing shape check; anything else is
recorded as a failure and the next strategy is tried. Strategies run
sequentially and are never retried within a pass.
"""

import logging
from typing import List, Optional

from gazette_cache import ResultCache
from gazette_config import GazetteSettings
from gazette_errors import FetchFailure, MalformedContentFailure, NetworkFailure, TerminalFailure
from gazette_extractor import is_valid_acquisition
from gazette_models import AcquisitionResult


logger = logging.getLogger(__name__)

SEARCH_STRATEGY_NAME = "search"

FAILURE_EXPLANATIONS = {
    "blocked": "source site refused the connection",
    "timeout": "source site did not respond in time",
    "network": "source site could not be reached",
    "malformed": "source page did not contain the gazette listing",
}


def describe_failures(failures: List[FetchFailure], fallback_note: str = "") -> str:
    """Human-readable explanation of an exhausted strategy chain."""
    if not failures:
        parts = ["no acquisition strategy is configured"]
    else:
        first = failures[0]
        parts = [FAILURE_EXPLANATIONS.get(first.kind, "source site could not be read")]
        if len(failures) > 1:
            parts.append("alternate strategies also failed")
    if fallback_note:
        parts.append(fallback_note)
    return "; ".join(parts)


class AcquisitionOrchestrator:
    def __init__(
        self,
        settings: GazetteSettings,
        strategies: list,
        cache: Optional[ResultCache] = None,
        fallback=None,
    ):
        self.settings = settings
        self.strategies = list(strategies)
        self.cache = cache if cache is not None else ResultCache(ttl_seconds=settings.cache_ttl_seconds)
        self.fallback = fallback
        self.last_failures: List[FetchFailure] = []

    def _is_valid(self, result: AcquisitionResult) -> bool:
        return is_valid_acquisition(result, self.settings)

    @staticmethod
    def _normalize(output, strategy_name: str) -> AcquisitionResult:
        if isinstance(output, AcquisitionResult):
            return output
        if isinstance(output, str):
            return AcquisitionResult.raw(output, strategy=strategy_name)
        return AcquisitionResult.structured(list(output or []), strategy=strategy_name)

    def acquire(self, url: Optional[str] = None) -> AcquisitionResult:
        url = url or self.settings.listing_url

        cached = self.cache.get(url, validator=self._is_valid)
        if cached is not None:
            logger.info("Using cached %s acquisition for %s", cached.strategy or cached.mode, url)
            return cached

        failures: List[FetchFailure] = []
        for strategy in self.strategies:
            name = getattr(strategy, "name", type(strategy).__name__)
            logger.info("Trying %s strategy for %s", name, url)
            try:
                output = strategy.attempt(url)
            except FetchFailure as e:
                failures.append(e)
                logger.warning("%s strategy failed (%s): %s", name, e.kind, e)
                continue
            except Exception as e:
                failure = NetworkFailure(f"{name} strategy raised {type(e).__name__}: {e}", strategy=name, url=url)
                failures.append(failure)
                logger.warning("%s strategy raised unexpectedly: %s", name, e)
                continue

            result = self._normalize(output, name)
            if not self._is_valid(result):
                failure = MalformedContentFailure(
                    f"{name} strategy returned content without gazette records",
                    strategy=name,
                    url=url,
                )
                failures.append(failure)
                logger.warning("%s strategy content failed the listing shape check", name)
                continue

            self.last_failures = failures
            self.cache.put(url, result)
            logger.info("Acquired listing via %s strategy (%s mode)", name, result.mode)
            return result

        self.last_failures = failures
        if self.fallback is None or not self.fallback.available:
            raise TerminalFailure(
                describe_failures(failures, fallback_note="web search fallback is not configured"),
                failures=failures,
            )

        records = self.fallback.discover()
        return AcquisitionResult.structured(records, strategy=SEARCH_STRATEGY_NAME)
