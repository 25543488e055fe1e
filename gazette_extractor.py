#!/usr/bin/env python3
"""
Gazette listing extractor.

Turns the listing page of the municipal official gazette into GazetteRecord
objects. Both acquisition paths feed the same row model:

- raw markup is parsed with BeautifulSoup into rows (``parse_listing_rows``);
- a rendered browser page is evaluated in place with ``ROW_EVALUATION_SCRIPT``,
  which reads the visually rendered text into rows of the same shape.

A row is ``{"handlers": [...], "fields": [[label_or_None, value], ...], "text": str}``.
``records_from_rows`` applies the id, label and title rules to either kind.
"""

import logging
import re
import dataclasses
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from gazette_config import GazetteSettings
from gazette_errors import ExtractionFailure, MalformedContentFailure
from gazette_models import AcquisitionResult, GazetteRecord, document_url_for, utc_now


logger = logging.getLogger(__name__)


ROW_EVALUATION_SCRIPT = """
(cfg) => {
  const container = document.getElementById(cfg.containerId);
  if (!container) return null;
  const rows = [];
  container.querySelectorAll(cfg.recordSelector).forEach((el) => {
    const handlers = [];
    [el, ...el.querySelectorAll('*')].forEach((node) => {
      for (const attr of node.attributes) {
        if (attr.name.toLowerCase().startsWith('on')) handlers.push(attr.value);
      }
    });
    const fields = [];
    el.querySelectorAll(cfg.fieldSelector).forEach((block) => {
      const label = block.querySelector(cfg.labelSelector);
      const value = block.querySelector(cfg.valueSelector);
      if (label && value) {
        fields.push([label.innerText, value.innerText]);
      } else {
        fields.push([null, block.innerText]);
      }
    });
    rows.push({handlers: handlers, fields: fields, text: el.innerText});
  });
  return rows;
}
"""


def evaluation_arguments(settings: GazetteSettings) -> Dict[str, str]:
    return {
        "containerId": settings.container_id,
        "recordSelector": settings.record_selector,
        "fieldSelector": settings.field_selector,
        "labelSelector": settings.field_label_selector,
        "valueSelector": settings.field_value_selector,
    }


def _clean_text(text: str) -> str:
    blob = str(text or "").replace("&nbsp;", " ").replace("\xa0", " ")
    blob = re.sub(r"<br\s*/?>", "\n", blob, flags=re.IGNORECASE)
    lines = []
    for raw in blob.splitlines():
        line = re.sub(r"[ \t\r\f\v]+", " ", raw).strip()
        if line:
            lines.append(line)
    return "\n".join(lines).strip()


def _tag_text(tag) -> str:
    for br in tag.find_all("br"):
        br.replace_with("\n")
    return _clean_text(tag.get_text())


def _split_label(text: str) -> Tuple[str, str]:
    cleaned = _clean_text(text)
    if ":" not in cleaned:
        return "", cleaned
    label, value = cleaned.split(":", 1)
    return label.strip(), value.strip()


def _event_handlers(element) -> List[str]:
    handlers = []
    for node in [element] + element.find_all(True):
        for attr, value in node.attrs.items():
            if str(attr).lower().startswith("on") and isinstance(value, str):
                handlers.append(value)
    return handlers


def looks_like_listing(html: str, settings: GazetteSettings) -> bool:
    """Shape check: the content container and at least one record handler exist."""
    blob = str(html or "")
    if settings.action_handler not in blob:
        return False
    soup = BeautifulSoup(blob, "html.parser")
    return soup.find(id=settings.container_id) is not None


def is_valid_acquisition(result: AcquisitionResult, settings: GazetteSettings) -> bool:
    if result.is_structured:
        return bool(result.records) and all(r.source_url for r in result.records)
    return looks_like_listing(result.content, settings)


def parse_listing_rows(html: str, settings: GazetteSettings) -> List[Dict[str, Any]]:
    soup = BeautifulSoup(str(html or ""), "html.parser")
    container = soup.find(id=settings.container_id)
    if container is None:
        raise MalformedContentFailure(
            f"Listing container #{settings.container_id} not found",
            strategy="extractor",
        )

    rows = []
    for element in container.select(settings.record_selector):
        fields = []
        for block in element.select(settings.field_selector):
            label_el = block.select_one(settings.field_label_selector)
            value_el = block.select_one(settings.field_value_selector)
            if label_el is not None and value_el is not None:
                fields.append([_tag_text(label_el), _tag_text(value_el)])
            else:
                fields.append([None, _tag_text(block)])
        rows.append(
            {
                "handlers": _event_handlers(element),
                "fields": fields,
                "text": _tag_text(element),
            }
        )
    return rows


def extract_record_id(handlers: List[str], action_handler: str) -> str:
    for handler in handlers:
        blob = str(handler or "")
        idx = blob.find(action_handler)
        if idx < 0:
            continue
        m = re.search(r"\d+", blob[idx + len(action_handler):])
        if m:
            return m.group(0)
    return ""


def classify_label(label: str, settings: GazetteSettings) -> str:
    text = str(label or "").casefold()
    if not text:
        return ""
    # The key that appears first names the field: "Resumo da publicação" is a summary.
    best_name, best_pos = "", len(text)
    for field_name, keys in settings.label_keys.items():
        for key in keys:
            pos = text.find(key)
            if 0 <= pos < best_pos:
                best_name, best_pos = field_name, pos
    return best_name


def _row_pairs(row: Dict[str, Any]) -> List[Tuple[str, str]]:
    pairs = []
    for entry in row.get("fields") or []:
        label, value = (list(entry) + [None, ""])[:2]
        if label is None:
            pairs.append(_split_label(value))
        else:
            pairs.append((_clean_text(label).rstrip(":").strip(), _clean_text(value)))
    if not pairs:
        # Rows without labeled blocks: fall back to "Label: value" lines.
        for line in _clean_text(row.get("text", "")).splitlines():
            if ":" in line:
                pairs.append(_split_label(line))
    return pairs


def build_record(
    row: Dict[str, Any],
    settings: GazetteSettings,
    discovered_at: Optional[datetime] = None,
) -> GazetteRecord:
    record_id = extract_record_id(row.get("handlers") or [], settings.action_handler)
    if not record_id:
        raise ExtractionFailure("row has no document handler with a numeric id")

    values = {"publication_date": "", "edition_label": "", "content_summary": ""}
    for label, value in _row_pairs(row):
        field_name = classify_label(label, settings)
        if field_name and not values[field_name]:
            values[field_name] = value

    edition = values["edition_label"]
    if edition:
        title = f"{settings.fallback_title} - {edition}"
    else:
        title = f"{settings.fallback_title} (ID: {record_id})"

    return GazetteRecord(
        id=record_id,
        title=title,
        source_url=document_url_for(record_id, settings.document_url_template),
        publication_date=values["publication_date"],
        edition_label=edition,
        content_summary=values["content_summary"],
        discovered_at=discovered_at or utc_now(),
    )


def records_from_rows(
    rows: List[Dict[str, Any]],
    settings: GazetteSettings,
    discovered_at: Optional[datetime] = None,
) -> List[GazetteRecord]:
    stamp = discovered_at or utc_now()
    records = []
    skipped = 0
    for idx, row in enumerate(rows or []):
        try:
            records.append(build_record(row, settings, discovered_at=stamp))
        except ExtractionFailure as e:
            skipped += 1
            logger.debug("Skipping listing row %d: %s", idx, e)
    if skipped:
        logger.info("Extracted %d records, skipped %d rows without a document id", len(records), skipped)
    return records


def extract_records(
    html: str,
    settings: GazetteSettings,
    discovered_at: Optional[datetime] = None,
) -> List[GazetteRecord]:
    return records_from_rows(parse_listing_rows(html, settings), settings, discovered_at=discovered_at)


def records_from_acquisition(
    result: AcquisitionResult,
    settings: GazetteSettings,
    discovered_at: Optional[datetime] = None,
) -> List[GazetteRecord]:
    """Records for one check. Structured records are copied so callers may modify them."""
    if result.is_structured:
        return [dataclasses.replace(r) for r in result.records]
    return extract_records(result.content, settings, discovered_at=discovered_at or result.acquired_at)
