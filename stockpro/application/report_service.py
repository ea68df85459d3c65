"""Tabular reports over the entry list (stock, billing, unloading performance)."""

from __future__ import annotations

import csv
import io
from typing import Any, Dict, Iterable, List, Mapping

from stockpro.domain.contracts import ReportRequestInput
from stockpro.errors import ValidationError
from stockpro.ui_strings import REPORT_HEADERS


REPORT_COLUMNS: Dict[str, tuple[str, ...]] = {
    "estoque": ("fornecedor", "descricao_produto", "tonelada", "status", "data_nf"),
    "faturamento": ("nf_numero", "valor", "data_emissao_nf", "cte_intertex", "cte_transportador"),
    "performance": ("nf_numero", "placa_veiculo", "hora_chegada", "hora_entrada", "hora_saida"),
}


class ReportService:
    def filter_entries(
        self,
        entries: Iterable[Mapping[str, Any]],
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        fornecedor: str | None = None,
    ) -> List[Mapping[str, Any]]:
        # data_nf is an ISO date string, so lexical comparison orders by day.
        supplier_filter = (fornecedor or "").strip().lower()
        selected = []
        for entry in entries:
            data_nf = str(entry.get("data_nf") or "")
            if start_date and data_nf < start_date:
                continue
            if end_date and data_nf > end_date:
                continue
            if supplier_filter and supplier_filter not in str(entry.get("fornecedor") or "").lower():
                continue
            selected.append(entry)
        return selected

    def build(self, entries: Iterable[Mapping[str, Any]], report_input: ReportRequestInput) -> Dict[str, Any]:
        report_type = (report_input.report_type or "").strip().lower()
        columns = REPORT_COLUMNS.get(report_type)
        if columns is None:
            raise ValidationError(
                code="report_type_invalid",
                message_key="report_type_invalid",
                payload={"allowed": sorted(REPORT_COLUMNS)},
            )
        selected = self.filter_entries(
            entries,
            start_date=report_input.start_date,
            end_date=report_input.end_date,
            fornecedor=report_input.fornecedor,
        )
        return {
            "report": report_type,
            "headers": list(REPORT_HEADERS[report_type]),
            "rows": [[entry.get(column) for column in columns] for entry in selected],
        }

    @staticmethod
    def to_csv(report: Mapping[str, Any]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(report["headers"])
        for row in report["rows"]:
            writer.writerow(["" if value is None else value for value in row])
        return buffer.getvalue()
