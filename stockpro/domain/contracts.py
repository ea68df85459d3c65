from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class ServiceOutput:
    payload: Any
    status_code: int = 200


@dataclass(frozen=True)
class EntryCreateInput:
    payload: Dict[str, Any]
    request_token: str | None = None


@dataclass(frozen=True)
class EntryUpdateInput:
    entry_id: int
    payload: Any


@dataclass(frozen=True)
class ReportRequestInput:
    report_type: str
    start_date: str | None = None
    end_date: str | None = None
    fornecedor: str | None = None
