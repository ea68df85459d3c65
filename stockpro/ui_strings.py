from __future__ import annotations

from typing import Dict, List


REPORT_HEADERS: Dict[str, List[str]] = {
    "estoque": ["Fornecedor", "Produto", "Tonelada", "Status", "Data NF"],
    "faturamento": ["NF", "Valor", "Data Emissão", "CTE Intertex", "CTE Transportador"],
    "performance": ["NF", "Placa", "Chegada", "Entrada", "Saída"],
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "error": {
        "no_updates_provided": "No updates provided",
        "content_required": "Content is required",
        "nfe_parse_failed": "Failed to parse NF-e",
        "entry_not_found": "Entry not found",
        "field_unknown": "Unknown field",
        "field_readonly": "Field cannot be updated",
        "status_invalid": "Invalid status",
        "product_invalid": "Invalid product",
        "destination_invalid": "Invalid destination",
        "number_invalid": "Invalid number",
        "tonnage_negative": "Tonnage cannot be negative",
        "payload_invalid": "Request body must be a JSON object",
        "report_type_invalid": "Unknown report type",
        "database_error": "Database Error",
        "route_not_found": "Route not found",
        "frontend_not_built": "Front-end build not found",
        "unexpected_error": "Internal Server Error",
    },
    "advisory": {
        "offline_queued": (
            "Sistema offline: o registro foi salvo localmente e sera enviado "
            "ao servidor quando a conexao voltar."
        ),
    },
}


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def advisory_message(key: str, default: str | None = None) -> str:
    return get_message("advisory", key, default)
