#!/usr/bin/env python3
"""
Gazette check pipeline.

acquire -> extract -> (optional year filter) -> dedupe by source URL ->
newest first by id -> keep the result window -> enrich the newest record with
PDF text and an AI summary.
"""

import logging
from typing import Iterable, List, Optional

from gazette_cache import ResultCache
from gazette_config import SEARCH_EDITION_MARKER, GazetteSettings
from gazette_enrichment import OpenAISummarizer, PdfTextExtractor
from gazette_extractor import records_from_acquisition
from gazette_fetchers import default_strategies
from gazette_models import GazetteRecord
from gazette_orchestrator import AcquisitionOrchestrator
from gazette_search import GenerativeFallback


logger = logging.getLogger(__name__)

AI_SUMMARY_HEADING = "### Resumo gerado por IA"
SITE_SUMMARY_HEADING = "### Resumo do site"
NO_SITE_SUMMARY = "(sem resumo no site)"


def dedupe_by_source_url(*batches: Iterable[GazetteRecord]) -> List[GazetteRecord]:
    """Merge batches keeping the first record seen for each source URL."""
    out = []
    seen = set()
    for batch in batches:
        for record in batch:
            if record.source_url in seen:
                continue
            seen.add(record.source_url)
            out.append(record)
    return out


def newest_first(records: Iterable[GazetteRecord]) -> List[GazetteRecord]:
    # sorted() is stable with reverse=True, so equal ids keep their order.
    return sorted(records, key=lambda r: r.numeric_id, reverse=True)


def filter_by_year(records: Iterable[GazetteRecord], year: Optional[str]) -> List[GazetteRecord]:
    if not year:
        return list(records)
    return [r for r in records if year in r.publication_date or year in r.edition_label]


def mark_new(records: Iterable[GazetteRecord], last_seen_url: Optional[str]) -> None:
    for record in records:
        record.is_new_since_last_check = record.source_url != last_seen_url


def combine_summaries(ai_summary: str, site_summary: str) -> str:
    return (
        f"{AI_SUMMARY_HEADING}\n{ai_summary.strip()}\n\n"
        f"{SITE_SUMMARY_HEADING}\n{(site_summary or '').strip() or NO_SITE_SUMMARY}"
    )


class GazettePipeline:
    def __init__(
        self,
        settings: GazetteSettings,
        orchestrator: AcquisitionOrchestrator,
        pdf_extractor=None,
        summarizer=None,
    ):
        self.settings = settings
        self.orchestrator = orchestrator
        self.pdf_extractor = pdf_extractor
        self.summarizer = summarizer

    def check(self, last_seen_url: Optional[str] = None) -> List[GazetteRecord]:
        """Run one full check. Raises TerminalFailure when acquisition is exhausted."""
        result = self.orchestrator.acquire(self.settings.listing_url)
        records = records_from_acquisition(result, self.settings)
        records = filter_by_year(records, self.settings.year_filter)
        records = newest_first(dedupe_by_source_url(records))[: self.settings.result_window]
        logger.info("Check produced %d records (via %s)", len(records), result.strategy or result.mode)

        mark_new(records, last_seen_url)
        if records:
            self.enrich(records[0])
        return records

    def enrich(self, record: GazetteRecord) -> None:
        if self.pdf_extractor is None or self.summarizer is None:
            return
        if record.edition_label == SEARCH_EDITION_MARKER:
            # Search-derived records already carry model text and no PDF.
            return
        try:
            text = self.pdf_extractor.extract_text(record.source_url)
            ai_summary = self.summarizer.summarize(text)
        except Exception as e:
            logger.warning("Enrichment of %s failed; keeping site summary: %s", record.source_url, e)
            return
        record.content_summary = combine_summaries(ai_summary, record.content_summary)


def build_pipeline(settings: GazetteSettings, cache: Optional[ResultCache] = None) -> GazettePipeline:
    orchestrator = AcquisitionOrchestrator(
        settings,
        strategies=default_strategies(settings),
        cache=cache,
        fallback=GenerativeFallback(settings),
    )
    summarizer = OpenAISummarizer(settings) if settings.openai_api_key else None
    return GazettePipeline(
        settings,
        orchestrator,
        pdf_extractor=PdfTextExtractor(settings),
        summarizer=summarizer,
    )
