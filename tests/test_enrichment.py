import io
from types import SimpleNamespace

import pytest
from curl_cffi.requests.exceptions import Timeout as CurlTimeout
from pypdf import PdfWriter

from conftest import FakeResponse, FakeSession
from gazette_enrichment import SUMMARY_ERROR, SUMMARY_UNAVAILABLE, OpenAISummarizer, PdfTextExtractor
from gazette_errors import EnrichmentFailure

PDF_URL = "https://saojoaodelrei.mg.gov.br/Obter_Arquivo_Cadastro_Generico.php?INT_ARQ=4821"


def _blank_pdf():
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(FakeResponse(404, content=b"")),
        FakeSession(FakeResponse(200, content=b"<html>erro</html>")),
        FakeSession(error=CurlTimeout("timed out")),
    ],
)
def test_pdf_errors_become_enrichment_failures(settings, session):
    with pytest.raises(EnrichmentFailure):
        PdfTextExtractor(settings, session=session).extract_text(PDF_URL)


def test_scanned_pdf_without_text(settings):
    session = FakeSession(FakeResponse(200, content=_blank_pdf()))

    with pytest.raises(EnrichmentFailure, match="No text extracted"):
        PdfTextExtractor(settings, session=session).extract_text(PDF_URL)

    assert session.requested[0][1]["timeout"] == settings.pdf_timeout


def _client(create):
    return SimpleNamespace(responses=SimpleNamespace(create=create))


def test_summarizer_returns_model_text(settings):
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        return SimpleNamespace(output_text="  Decreto 10 nomeia servidores.  ")

    summary = OpenAISummarizer(settings, client=_client(create)).summarize("texto " * 10)

    assert summary == "Decreto 10 nomeia servidores."
    assert seen["temperature"] == 0.3
    assert "São João del-Rei" in seen["input"]


def test_summarizer_truncates_input(settings):
    settings.summary_max_chars = 10
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        return SimpleNamespace(output_text="ok")

    OpenAISummarizer(settings, client=_client(create)).summarize("A" * 50)

    assert "A" * 10 in seen["input"]
    assert "A" * 11 not in seen["input"]


def test_summarizer_never_raises(settings):
    def create(**kwargs):
        raise RuntimeError("rate limited")

    assert OpenAISummarizer(settings, client=_client(create)).summarize("x") == SUMMARY_ERROR


def test_summarizer_empty_answer(settings):
    client = _client(lambda **kwargs: SimpleNamespace(output_text=""))

    assert OpenAISummarizer(settings, client=client).summarize("x") == SUMMARY_UNAVAILABLE
