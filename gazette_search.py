#!/usr/bin/env python3
"""
Generative search fallback.

Last-resort discovery when every deterministic fetch strategy failed: ask a
web-search-grounded model for the latest gazette edition and turn its
citations into low-confidence records.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
from urllib.parse import urlparse

from gazette_config import SEARCH_EDITION_MARKER, GazetteSettings
from gazette_models import GazetteRecord, document_url_for, utc_now


logger = logging.getLogger(__name__)

SEARCH_INSTRUCTIONS = "Você é um monitor de transparência pública. Busque por fatos recentes."
GENERIC_RESULT_TITLE = "Resumo das últimas atualizações (busca na web)"


@dataclass
class Citation:
    url: str
    title: str = ""


@dataclass
class SearchAnswer:
    free_text: str = ""
    citations: List[Citation] = field(default_factory=list)


def _normalize_obj(obj):
    if obj is None:
        return {}
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if isinstance(obj, dict):
        return obj
    return {}


def _extract_response_text(response) -> str:
    txt = getattr(response, "output_text", None)
    if txt:
        return str(txt).strip()
    resp_dict = _normalize_obj(response)
    for item in resp_dict.get("output", []) or []:
        if item.get("type") == "message":
            for content_item in item.get("content", []) or []:
                if content_item.get("type") in ("output_text", "text") and content_item.get("text"):
                    return str(content_item.get("text")).strip()
    return ""


def _extract_url_citations(response) -> List[Citation]:
    resp_dict = _normalize_obj(response)
    citations = []
    for item in resp_dict.get("output", []) or []:
        if item.get("type") != "message":
            continue
        for content_item in item.get("content", []) or []:
            for annotation in content_item.get("annotations", []) or []:
                if annotation.get("type") != "url_citation":
                    continue
                url = str(annotation.get("url", "") or "").strip()
                if url:
                    citations.append(Citation(url=url, title=str(annotation.get("title", "") or "").strip()))
    return citations


class OpenAIWebSearch:
    """search(prompt) -> SearchAnswer, backed by the Responses API web-search tool."""

    def __init__(self, settings: GazetteSettings, client=None):
        self.settings = settings
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(api_key=self.settings.openai_api_key)
        return self._client

    def search(self, prompt: str) -> SearchAnswer:
        response = self.client.responses.create(
            model=self.settings.search_model,
            instructions=SEARCH_INSTRUCTIONS,
            input=prompt,
            tools=[{"type": "web_search_preview"}],
        )
        return SearchAnswer(
            free_text=_extract_response_text(response),
            citations=_extract_url_citations(response),
        )


def build_search_prompt(settings: GazetteSettings) -> str:
    year_hint = f" de {settings.year_filter}" if settings.year_filter else ""
    return (
        f'Encontre a edição mais recente do "Diário Oficial" publicada no site oficial de '
        f"{settings.municipality} ({settings.site_domain}){year_hint}. "
        "Informe a data de publicação, o número da edição e liste os decretos ou assuntos "
        "principais mencionados."
    )


def _id_from_url(url: str) -> Optional[str]:
    parsed = urlparse(url)
    m = re.search(r"(?:INT_ARQ|id|arquivo)=(\d+)", parsed.query, flags=re.IGNORECASE)
    if m:
        return m.group(1)
    m = re.search(r"obterArquivoCadastroGenerico\D*(\d+)", url, flags=re.IGNORECASE)
    if m:
        return m.group(1)
    return None


def _date_from_title(title: str, fallback: datetime) -> str:
    m = re.search(r"\b(\d{2})/(\d{2})/(\d{4})\b", str(title or ""))
    if m:
        return m.group(0)
    return fallback.strftime("%d/%m/%Y")


def _on_domain(url: str, domain: str) -> bool:
    host = urlparse(url).netloc.lower()
    domain = domain.lower()
    return host == domain or host.endswith("." + domain)


class GenerativeFallback:
    def __init__(
        self,
        settings: GazetteSettings,
        searcher=None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings
        self.searcher = searcher if searcher is not None else OpenAIWebSearch(settings)
        self._clock = clock

    @property
    def available(self) -> bool:
        if not self.settings.fallback_enabled:
            return False
        if isinstance(self.searcher, OpenAIWebSearch):
            return bool(self.settings.openai_api_key)
        return True

    def discover(self) -> List[GazetteRecord]:
        """Return at most one search-derived record; empty if the service errors."""
        logger.warning("All fetch strategies failed; asking web search for the latest edition")
        try:
            answer = self.searcher.search(build_search_prompt(self.settings))
        except Exception as e:
            logger.error("Web search fallback failed: %s", e)
            return []
        return self.records_from_answer(answer)

    def records_from_answer(self, answer: SearchAnswer) -> List[GazetteRecord]:
        now = self._clock()
        free_text = str(answer.free_text or "").strip()

        for citation in answer.citations:
            if not _on_domain(citation.url, self.settings.site_domain):
                continue
            record_id = _id_from_url(citation.url)
            source_url = citation.url
            if record_id:
                source_url = document_url_for(record_id, self.settings.document_url_template)
            title = citation.title or (
                f"{self.settings.fallback_title} (ID: {record_id})" if record_id else self.settings.fallback_title
            )
            logger.info("Web search cited %s", citation.url)
            return [
                GazetteRecord(
                    id=record_id,
                    title=title,
                    source_url=source_url,
                    publication_date=_date_from_title(citation.title, now),
                    edition_label=SEARCH_EDITION_MARKER,
                    content_summary=free_text,
                    discovered_at=now,
                )
            ]

        if free_text:
            logger.info("Web search returned no on-domain citation; using its answer as a generic record")
            return [
                GazetteRecord(
                    id=None,
                    title=GENERIC_RESULT_TITLE,
                    source_url=self.settings.listing_url,
                    publication_date=now.strftime("%d/%m/%Y"),
                    edition_label=SEARCH_EDITION_MARKER,
                    content_summary=free_text,
                    discovered_at=now,
                )
            ]
        return []

