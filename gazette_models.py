#!/usr/bin/env python3
"""
Data model for discovered gazette editions and acquisition results.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from gazette_config import DOCUMENT_URL_TEMPLATE


MODE_STRUCTURED = "structured"
MODE_RAW = "raw"


def document_url_for(record_id: str, template: str = DOCUMENT_URL_TEMPLATE) -> str:
    return template.format(id=record_id)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class GazetteRecord:
    id: Optional[str]
    title: str
    source_url: str
    publication_date: str = ""
    edition_label: str = ""
    content_summary: str = ""
    discovered_at: datetime = field(default_factory=utc_now)
    is_new_since_last_check: bool = False

    @property
    def numeric_id(self) -> int:
        """Sort key; records without an id sort after every numbered edition."""
        text = str(self.id or "").strip()
        return int(text) if text.isdigit() else -1

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["discovered_at"] = self.discovered_at.isoformat()
        return data


@dataclass
class AcquisitionResult:
    mode: str
    records: List[GazetteRecord] = field(default_factory=list)
    content: str = ""
    strategy: str = ""
    acquired_at: datetime = field(default_factory=utc_now)

    @classmethod
    def structured(cls, records: List[GazetteRecord], strategy: str = "") -> "AcquisitionResult":
        return cls(mode=MODE_STRUCTURED, records=list(records), strategy=strategy)

    @classmethod
    def raw(cls, content: str, strategy: str = "") -> "AcquisitionResult":
        return cls(mode=MODE_RAW, content=str(content or ""), strategy=strategy)

    @property
    def is_structured(self) -> bool:
        return self.mode == MODE_STRUCTURED
