from types import SimpleNamespace

import pytest

from gazette_config import GazetteSettings
from gazette_errors import BlockedFailure


def listing_row(record_id=None, date=None, edition=None, summary=None, handler="obterArquivoCadastroGenerico"):
    """HTML for one record block of the listing page."""
    parts = ['<div class="box-arquivo">']
    if record_id is not None:
        parts.append(f'<a href="javascript:void(0)" onclick="{handler}({record_id})">Baixar</a>')
    for label, value in (("Data:", date), ("Edição:", edition), ("Resumo:", summary)):
        if value is None:
            continue
        parts.append(
            f'<div class="campo"><span class="campo-titulo">{label}</span> '
            f'<span class="campo-valor">{value}</span></div>'
        )
    parts.append("</div>")
    return "".join(parts)


def listing_page(*rows, container_id="conteudo", title="Diário Oficial - Prefeitura de São João del-Rei"):
    body = "".join(rows)
    return (
        f"<html><head><title>{title}</title></head><body>"
        f'<div id="{container_id}">{body}</div>'
        "</body></html>"
    )


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ScriptedStrategy:
    """Strategy whose attempt() replays a fixed outcome and logs the call."""

    def __init__(self, name, outcome, calls):
        self.name = name
        self.outcome = outcome
        self.calls = calls

    def attempt(self, url):
        self.calls.append(self.name)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class FakeFallback:
    def __init__(self, records=None, available=True):
        self.records = list(records or [])
        self.available = available
        self.calls = 0

    def discover(self):
        self.calls += 1
        return list(self.records)


class FakeResponse:
    def __init__(self, status_code=200, text="", content=b"", url=""):
        self.status_code = status_code
        self.text = text
        self.content = content
        self.url = url


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.headers = {}
        self.requested = []

    def get(self, url, **kwargs):
        self.requested.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


class FakePage:
    def __init__(self, title="Diário Oficial", status=200, rows=None, html="", goto_error=None,
                 idle_timeout=False, selector_timeout=False):
        self._title = title
        self._status = status
        self._rows = rows
        self._html = html
        self._goto_error = goto_error
        self._idle_timeout = idle_timeout
        self._selector_timeout = selector_timeout
        self.evaluated_with = None

    def set_default_navigation_timeout(self, ms):
        self.navigation_timeout = ms

    def goto(self, url, wait_until=None, timeout=None):
        if self._goto_error is not None:
            raise self._goto_error

        return SimpleNamespace(status=self._status)

    def wait_for_load_state(self, state, timeout=None):
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        if self._idle_timeout:
            raise PlaywrightTimeoutError("network never went idle")

    def title(self):
        return self._title

    def wait_for_selector(self, selector, timeout=None):
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

        if self._selector_timeout:
            raise PlaywrightTimeoutError(f"{selector} not found")

    def evaluate(self, script, arg):
        self.evaluated_with = arg
        return self._rows

    def content(self):
        return self._html


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.closed = False
        self.context_kwargs = None

    def new_context(self, **kwargs):
        self.context_kwargs = kwargs
        browser = self

        class _Context:
            def new_page(self_inner):
                return browser.page

        return _Context()

    def close(self):
        self.closed = True


class FakePlaywright:
    def __init__(self, page):
        self.browser = FakeBrowser(page)
        self.exited = False
        outer = self

        class _Chromium:
            def launch(self_inner, headless=True):
                outer.launched_headless = headless
                return outer.browser

        self.chromium = _Chromium()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.exited = True
        return False


@pytest.fixture()
def settings():
    return GazetteSettings(openai_api_key=None)


@pytest.fixture()
def sample_html():
    return listing_page(
        listing_row(4821, date="10/05/2025", edition="Edição nº 512", summary="Decretos e portarias"),
        listing_row(4790, date="03/05/2025", edition="Edição nº 511"),
        listing_row(4805, date="06/05/2025"),
    )


@pytest.fixture()
def fake_clock():
    return FakeClock()


@pytest.fixture()
def call_log():
    return []


def blocked(name):
    return BlockedFailure(f"{name} blocked", strategy=name, status_code=403)
