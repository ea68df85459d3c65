from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from stockpro.application.entry_service import EntryService
from stockpro.application.extraction_service import ExtractionService
from stockpro.application.report_service import ReportService
from stockpro.application.stock_service import StockService
from stockpro.db import get_db
from stockpro.domain.contracts import EntryCreateInput, EntryUpdateInput, ReportRequestInput
from stockpro.domain.entries import EntryRules
from stockpro.errors import ExtractionError
from stockpro.integrations.nfe_extractor import GeminiNfeExtractor
from stockpro.observability import observe_nfe_extraction


api_bp = Blueprint("api", __name__, url_prefix="/api")

IDEMPOTENCY_HEADER = "Idempotency-Key"

_ENTRY_SERVICE = EntryService()
_STOCK_SERVICE = StockService()
_EXTRACTION_SERVICE = ExtractionService()
_REPORT_SERVICE = ReportService()


def _entry_rules() -> EntryRules:
    return EntryRules.from_config(current_app.config)


def _query_arg(name: str) -> str | None:
    value = (request.args.get(name) or "").strip()
    return value or None


@api_bp.route("/entries", methods=["GET"])
def list_entries():
    db = get_db()
    return jsonify(_ENTRY_SERVICE.list_entries(db))


@api_bp.route("/entries", methods=["POST"])
def create_entry():
    db = get_db()
    payload = request.get_json(silent=True) or {}
    result = _ENTRY_SERVICE.create_entry(
        db,
        create_input=EntryCreateInput(
            payload=payload,
            request_token=request.headers.get(IDEMPOTENCY_HEADER),
        ),
        rules=_entry_rules(),
    )
    db.commit()
    return jsonify(result.payload), result.status_code


@api_bp.route("/entries/<int(signed=True):entry_id>", methods=["PUT"])
def update_entry(entry_id: int):
    db = get_db()
    payload = request.get_json(silent=True)
    result = _ENTRY_SERVICE.update_entry(
        db,
        update_input=EntryUpdateInput(entry_id=entry_id, payload=payload),
        rules=_entry_rules(),
    )
    db.commit()
    return jsonify(result.payload), result.status_code


@api_bp.route("/entries/<int(signed=True):entry_id>", methods=["DELETE"])
def delete_entry(entry_id: int):
    db = get_db()
    result = _ENTRY_SERVICE.delete_entry(db, entry_id=entry_id)
    db.commit()
    return jsonify(result.payload), result.status_code


@api_bp.route("/stock-summary", methods=["GET"])
def stock_summary():
    return jsonify(_STOCK_SERVICE.stock_by_supplier(get_db()))


@api_bp.route("/stock-by-product-destination", methods=["GET"])
def stock_by_product_destination():
    return jsonify(_STOCK_SERVICE.stock_by_product_destination(get_db()))


@api_bp.route("/parse-nfe", methods=["POST"])
def parse_nfe():
    payload = request.get_json(silent=True)
    extractor = GeminiNfeExtractor.from_config(current_app.config)
    try:
        result = _EXTRACTION_SERVICE.parse_nfe(payload=payload, extractor=extractor)
    except ExtractionError:
        observe_nfe_extraction("failed")
        raise
    observe_nfe_extraction("ok")
    return jsonify(result.payload), result.status_code


@api_bp.route("/reports/<report_type>", methods=["GET"])
def report(report_type: str):
    entries = _ENTRY_SERVICE.list_entries(get_db())
    built = _REPORT_SERVICE.build(
        entries,
        ReportRequestInput(
            report_type=report_type,
            start_date=_query_arg("start"),
            end_date=_query_arg("end"),
            fornecedor=_query_arg("fornecedor"),
        ),
    )
    if (_query_arg("format") or "").lower() == "csv":
        filename = f"relatorio_{built['report']}.csv"
        return Response(
            ReportService.to_csv(built),
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return jsonify(built)
