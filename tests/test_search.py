from datetime import datetime, timezone
from types import SimpleNamespace

from gazette_config import SEARCH_EDITION_MARKER
from gazette_search import Citation, GenerativeFallback, OpenAIWebSearch, SearchAnswer, build_search_prompt

NOW = datetime(2025, 5, 12, 9, 0, tzinfo=timezone.utc)


class FakeSearcher:
    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.prompts = []

    def search(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


def _fallback(settings, searcher):
    return GenerativeFallback(settings, searcher=searcher, clock=lambda: NOW)


def test_on_domain_citation_becomes_single_record(settings):
    answer = SearchAnswer(
        free_text="A edição 512 traz decretos.",
        citations=[
            Citation(url="https://news.example.com/diario", title="Notícia"),
            Citation(
                url="https://saojoaodelrei.mg.gov.br/Obter_Arquivo_Cadastro_Generico.php?INT_ARQ=4821",
                title="Diário Oficial 10/05/2025",
            ),
            Citation(url="https://saojoaodelrei.mg.gov.br/pagina/1", title="Outra"),
        ],
    )

    records = _fallback(settings, FakeSearcher(answer)).discover()

    assert len(records) == 1
    record = records[0]
    assert record.id == "4821"
    assert record.source_url == settings.document_url_template.format(id="4821")
    assert record.publication_date == "10/05/2025"
    assert record.edition_label == SEARCH_EDITION_MARKER
    assert record.content_summary == "A edição 512 traz decretos."


def test_citation_without_id_keeps_cited_url(settings):
    answer = SearchAnswer(
        free_text="texto",
        citations=[Citation(url="https://www.saojoaodelrei.mg.gov.br/noticia/diario", title="")],
    )

    [record] = _fallback(settings, FakeSearcher(answer)).discover()

    assert record.id is None
    assert record.source_url == "https://www.saojoaodelrei.mg.gov.br/noticia/diario"
    assert record.publication_date == "12/05/2025"


def test_free_text_without_on_domain_citation(settings):
    answer = SearchAnswer(free_text="Sem link direto.", citations=[Citation(url="https://example.com")])

    [record] = _fallback(settings, FakeSearcher(answer)).discover()

    assert record.source_url == settings.listing_url
    assert record.content_summary == "Sem link direto."


def test_empty_answer_and_service_error_yield_empty_batch(settings):
    assert _fallback(settings, FakeSearcher(SearchAnswer())).discover() == []
    assert _fallback(settings, FakeSearcher(error=RuntimeError("quota"))).discover() == []


def test_availability_depends_on_api_key(settings):
    assert not GenerativeFallback(settings).available
    settings.openai_api_key = "sk-test"
    assert GenerativeFallback(settings).available
    settings.fallback_enabled = False
    assert not GenerativeFallback(settings).available


def test_prompt_mentions_site_and_optional_year(settings):
    assert "saojoaodelrei.mg.gov.br" in build_search_prompt(settings)
    settings.year_filter = "2025"
    assert "de 2025" in build_search_prompt(settings)


def test_openai_web_search_parses_citations(settings):
    response = SimpleNamespace(
        output_text="Última edição: 512",
        model_dump=lambda: {
            "output": [
                {"type": "web_search_call"},
                {
                    "type": "message",
                    "content": [
                        {
                            "type": "output_text",
                            "text": "Última edição: 512",
                            "annotations": [
                                {"type": "url_citation", "url": "https://saojoaodelrei.mg.gov.br/x", "title": "X"},
                                {"type": "file_citation", "file_id": "f1"},
                            ],
                        }
                    ],
                },
            ]
        },
    )
    calls = []

    class _Responses:
        def create(self, **kwargs):
            calls.append(kwargs)
            return response

    client = SimpleNamespace(responses=_Responses())

    answer = OpenAIWebSearch(settings, client=client).search("prompt")

    assert answer.free_text == "Última edição: 512"
    assert [(c.url, c.title) for c in answer.citations] == [("https://saojoaodelrei.mg.gov.br/x", "X")]
    assert calls[0]["tools"] == [{"type": "web_search_preview"}]
