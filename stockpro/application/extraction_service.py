from __future__ import annotations

from typing import Any, Protocol

from stockpro.domain.contracts import ServiceOutput
from stockpro.errors import ValidationError


class NfeExtractor(Protocol):
    def extract(self, content: str) -> dict: ...


class ExtractionService:
    def parse_nfe(self, *, payload: Any, extractor: NfeExtractor) -> ServiceOutput:
        content = payload.get("content") if isinstance(payload, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise ValidationError(code="content_required", message_key="content_required")
        return ServiceOutput(payload=extractor.extract(content))
