#!/usr/bin/env python3
"""
Single-slot, time-boxed cache for the last successful acquisition.

Holds at most one entry. Not safe for unsynchronized concurrent writers; the
monitor runs one check at a time.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from gazette_models import AcquisitionResult


logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    key: str
    payload: AcquisitionResult
    stored_at: float


class ResultCache:
    def __init__(self, ttl_seconds: float = 600.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entry: Optional[CacheEntry] = None

    def get(
        self,
        url: str,
        validator: Optional[Callable[[AcquisitionResult], bool]] = None,
    ) -> Optional[AcquisitionResult]:
        entry = self._entry
        if entry is None:
            return None
        if entry.key != url:
            self.invalidate()
            return None

        age = self._clock() - entry.stored_at
        if age >= self.ttl_seconds:
            logger.info("Cache entry for %s expired after %.0fs", url, age)
            self.invalidate()
            return None
        if validator is not None and not validator(entry.payload):
            logger.warning("Cached payload for %s failed validation; evicting", url)
            self.invalidate()
            return None
        return entry.payload

    def put(self, url: str, payload: AcquisitionResult) -> None:
        self._entry = CacheEntry(key=url, payload=payload, stored_at=self._clock())

    def invalidate(self) -> None:
        self._entry = None

    def __len__(self) -> int:
        return 0 if self._entry is None else 1
