#!/usr/bin/env python3
"""
Enrichment collaborators for the newest gazette edition.

- PdfTextExtractor.extract_text(url): download the edition PDF and read its
  page text with pypdf. Raises EnrichmentFailure.
- OpenAISummarizer.summarize(text): Portuguese summary of the edition. Never
  raises; failures become an apologetic placeholder.
"""

import io
import logging

from curl_cffi import requests as cffi_requests
from curl_cffi.requests.exceptions import RequestException as CurlRequestException
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from gazette_config import BROWSER_HEADERS, GazetteSettings
from gazette_errors import EnrichmentFailure


logger = logging.getLogger(__name__)

SUMMARY_UNAVAILABLE = "Não foi possível gerar um resumo."
SUMMARY_ERROR = "Erro ao conectar com a IA para gerar o resumo. Tente novamente mais tarde."

SUMMARY_SYSTEM_PROMPT = "You are a helpful government transparency assistant. Be objective and concise."
SUMMARY_PROMPT_TEMPLATE = """You are an assistant analyzing the "Diário Oficial" (Official Gazette) of {municipality}.

Below is the text extracted from the latest PDF document.
Please provide a concise, structured summary in Portuguese (pt-BR).

Focus on:
1. **Key Decrees (Decretos):** Any new regulations.
2. **Hirings/Exonerations (Nomeações/Exonerações):** Key personnel changes.
3. **Bidding Processes (Licitações):** Major contracts or calls.
4. **General Announcements:** Anything affecting the public directly.

If the text contains mostly tabular data or nonsense due to extraction errors, try to summarize what kind of list it appears to be.

Here is the document text:
{text}
"""


class PdfTextExtractor:
    def __init__(self, settings: GazetteSettings, session=None):
        self.settings = settings
        if session is None:
            session = cffi_requests.Session(impersonate="chrome")
            session.headers.update(BROWSER_HEADERS)
        self.session = session

    def extract_text(self, url: str) -> str:
        try:
            response = self.session.get(url, timeout=self.settings.pdf_timeout, allow_redirects=True)
        except CurlRequestException as e:
            raise EnrichmentFailure(f"PDF download failed: {e}") from e

        status_code = int(getattr(response, "status_code", 0) or 0)
        if status_code >= 400:
            raise EnrichmentFailure(f"PDF download failed with HTTP {status_code}")

        content = getattr(response, "content", b"") or b""
        if not content.startswith(b"%PDF"):
            raise EnrichmentFailure("Downloaded document is not a PDF")

        try:
            reader = PdfReader(io.BytesIO(content))
            pages = []
            for idx, page in enumerate(reader.pages, 1):
                if idx > self.settings.pdf_max_pages:
                    break
                page_text = (page.extract_text() or "").strip()
                if page_text:
                    pages.append(f"[Página {idx}]\n{page_text}")
        except PdfReadError as e:
            raise EnrichmentFailure(f"PDF could not be parsed: {e}") from e

        text = "\n\n".join(pages).strip()
        if not text:
            raise EnrichmentFailure("No text extracted from PDF. It may be scanned.")
        return text


class OpenAISummarizer:
    def __init__(self, settings: GazetteSettings, client=None):
        self.settings = settings
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(api_key=self.settings.openai_api_key)
        return self._client

    def summarize(self, text: str) -> str:
        excerpt = str(text or "")[: self.settings.summary_max_chars]
        prompt = SUMMARY_PROMPT_TEMPLATE.format(municipality=self.settings.municipality, text=excerpt)
        try:
            response = self.client.responses.create(
                model=self.settings.openai_model,
                instructions=SUMMARY_SYSTEM_PROMPT,
                input=prompt,
                temperature=0.3,
            )
        except Exception as e:
            logger.error("Summary request failed: %s", e)
            return SUMMARY_ERROR
        summary = str(getattr(response, "output_text", "") or "").strip()
        return summary or SUMMARY_UNAVAILABLE
