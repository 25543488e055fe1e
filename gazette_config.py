#!/usr/bin/env python3
"""
Settings for the São João del-Rei official gazette monitor.

Defaults describe the municipality's public-notice listing page. Any value can
be overridden from a TOML secrets file (same layout as .streamlit/secrets.toml)
or, for the API key and listing URL, from the environment.
"""

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


GAZETTE_LISTING_URL = "https://saojoaodelrei.mg.gov.br/pagina/9837/Diario%20Oficial"
GAZETTE_SITE_ROOT = "https://saojoaodelrei.mg.gov.br/"
GAZETTE_SITE_DOMAIN = "saojoaodelrei.mg.gov.br"
DOCUMENT_URL_TEMPLATE = "https://saojoaodelrei.mg.gov.br/Obter_Arquivo_Cadastro_Generico.php?INT_ARQ={id}"
MUNICIPALITY_NAME = "São João del-Rei"

# Markup of the listing page.
CONTENT_CONTAINER_ID = "conteudo"
RECORD_SELECTOR = "div.box-arquivo"
FIELD_SELECTOR = "div.campo"
FIELD_LABEL_SELECTOR = ".campo-titulo"
FIELD_VALUE_SELECTOR = ".campo-valor"
ACTION_HANDLER_NAME = "obterArquivoCadastroGenerico"

FALLBACK_TITLE = "Diário Oficial"
SEARCH_EDITION_MARKER = "Resultado de busca (baixa confiança)"

DATE_LABEL_KEYS = ("data", "publicação", "publicacao")
EDITION_LABEL_KEYS = ("edição", "edicao", "número", "numero")
SUMMARY_LABEL_KEYS = ("resumo", "descrição", "descricao", "ementa", "assunto")

# Page titles of access-denied / interstitial pages (lowercase substrings).
BLOCK_TITLE_INDICATORS = (
    "access denied",
    "acesso negado",
    "forbidden",
    "captcha",
    "just a moment",
    "attention required",
    "verificação",
    "are you a robot",
)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)
BROWSER_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
    "Referer": GAZETTE_SITE_ROOT,
}

CORS_PROXY_TEMPLATE = "https://api.allorigins.win/raw?url={url}"

DEFAULT_CONFIG_PATH = ".streamlit/secrets.toml"
DEFAULT_STATE_PATH = "data/gazette_state.json"


@dataclass
class GazetteSettings:
    listing_url: str = GAZETTE_LISTING_URL
    site_domain: str = GAZETTE_SITE_DOMAIN
    document_url_template: str = DOCUMENT_URL_TEMPLATE
    municipality: str = MUNICIPALITY_NAME

    container_id: str = CONTENT_CONTAINER_ID
    record_selector: str = RECORD_SELECTOR
    field_selector: str = FIELD_SELECTOR
    field_label_selector: str = FIELD_LABEL_SELECTOR
    field_value_selector: str = FIELD_VALUE_SELECTOR
    action_handler: str = ACTION_HANDLER_NAME
    fallback_title: str = FALLBACK_TITLE

    result_window: int = 5
    year_filter: Optional[str] = None
    cache_ttl_seconds: float = 600.0

    direct_timeout: float = 20.0
    proxy_timeout: float = 25.0
    proxy_template: str = CORS_PROXY_TEMPLATE
    browser_timeout: float = 45.0
    container_wait_timeout: float = 10.0
    headless: bool = True
    evaluate_in_page: bool = True

    pdf_timeout: float = 60.0
    pdf_max_pages: int = 40
    summary_max_chars: int = 60000

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    search_model: str = "gpt-4o-mini"
    fallback_enabled: bool = True

    check_times: Tuple[str, ...] = field(default=("08:00", "20:00"))
    state_path: str = DEFAULT_STATE_PATH

    @property
    def label_keys(self) -> Dict[str, Tuple[str, ...]]:
        return {
            "publication_date": DATE_LABEL_KEYS,
            "edition_label": EDITION_LABEL_KEYS,
            "content_summary": SUMMARY_LABEL_KEYS,
        }


def _coerce(name: str, value: Any, default: Any) -> Any:
    if name == "check_times":
        if isinstance(value, str):
            value = [v.strip() for v in value.split(",") if v.strip()]
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"{name} must be a list of HH:MM strings")
        return tuple(str(v) for v in value)
    if name == "year_filter":
        text = str(value or "").strip()
        return text or None
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{name} must be true or false")
        return value
    if isinstance(default, (int, float)) and not isinstance(default, bool):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number")
        return type(default)(value)
    if value is None:
        return None
    return str(value)


def settings_from_dict(data: Dict[str, Any]) -> GazetteSettings:
    """Build settings from parsed TOML sections ([gazette], [fetch], [openai])."""
    settings = GazetteSettings()
    known = {f.name: f for f in fields(GazetteSettings)}
    flat: Dict[str, Any] = {}

    for section in ("gazette", "fetch"):
        flat.update(dict(data.get(section, {}) or {}))

    openai_cfg = dict(data.get("openai", {}) or {})
    if "api_key" in openai_cfg:
        flat["openai_api_key"] = openai_cfg["api_key"]
    if "model" in openai_cfg:
        flat["openai_model"] = openai_cfg["model"]
    if "search_model" in openai_cfg:
        flat["search_model"] = openai_cfg["search_model"]

    for name, value in flat.items():
        if name not in known:
            continue
        default = getattr(settings, name)
        if name == "openai_api_key":
            setattr(settings, name, str(value or "").strip() or None)
            continue
        setattr(settings, name, _coerce(name, value, default))

    if settings.result_window < 1:
        raise ValueError("result_window must be at least 1")
    return settings


def load_settings(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> GazetteSettings:
    env = os.environ if environ is None else environ
    config_path = Path(path or DEFAULT_CONFIG_PATH)

    data: Dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)

    settings = settings_from_dict(data)

    env_key = str(env.get("OPENAI_API_KEY", "") or "").strip()
    if env_key:
        settings.openai_api_key = env_key
    env_url = str(env.get("GAZETTE_URL", "") or "").strip()
    if env_url:
        settings.listing_url = env_url
    return settings
