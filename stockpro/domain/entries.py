"""Entry field catalogue, payload normalisation and stock grouping rules.

The grouping functions are shared by the server-side fallbacks and the client
cache so that offline views are computed with the same rules as
``GET /api/stock-summary``.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from stockpro.errors import ValidationError


STATUS_VALUES = ("Estoque", "Rejeitado", "Embarcado", "Devolvido")
IN_STOCK_STATUSES = frozenset({"Estoque", "Rejeitado"})
EXITED_STATUSES = frozenset({"Embarcado", "Devolvido"})

REQUIRED_FIELDS = (
    "mes",
    "chave_acesso",
    "nf_numero",
    "tonelada",
    "valor",
    "descricao_produto",
    "data_nf",
    "data_descarga",
    "status",
    "fornecedor",
    "placa_veiculo",
    "container",
    "destino",
)

LIFECYCLE_FIELDS = (
    "data_faturamento_vli",
    "cte_vli",
    "numero_vagao",
    "hora_chegada",
    "hora_entrada",
    "hora_saida",
    "data_emissao_nf",
    "cte_intertex",
    "data_emissao_cte",
    "cte_transportador",
    "data_emissao_cte_transp",
)

ENTRY_COLUMNS = REQUIRED_FIELDS + LIFECYCLE_FIELDS
NUMERIC_FIELDS = frozenset({"tonelada", "valor"})
SYSTEM_FIELDS = frozenset({"id", "created_at"})
CLIENT_FIELDS = frozenset({"isPending"})


class EntryRules:
    """Enumerations enforced at the HTTP boundary.

    ``enforce`` off reproduces the historical behaviour where any string was
    accepted for ``status``, ``descricao_produto`` and ``destino``.
    """

    def __init__(
        self,
        *,
        products: Sequence[str],
        destinations: Sequence[str],
        enforce: bool = True,
    ) -> None:
        self.products = tuple(products)
        self.destinations = tuple(destinations)
        self.enforce = bool(enforce)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "EntryRules":
        return cls(
            products=config.get("ENTRY_PRODUCTS") or (),
            destinations=config.get("ENTRY_DESTINATIONS") or (),
            enforce=bool(config.get("ENFORCE_ENTRY_ENUMS", True)),
        )

    def check(self, field: str, value: Any) -> None:
        if not self.enforce:
            return
        if value is None and field != "status":
            return
        if field == "status" and value not in STATUS_VALUES:
            raise ValidationError(
                code="status_invalid",
                message_key="status_invalid",
                payload={"field": field, "allowed": list(STATUS_VALUES)},
            )
        if field == "descricao_produto" and self.products and value not in self.products:
            raise ValidationError(
                code="product_invalid",
                message_key="product_invalid",
                payload={"field": field, "allowed": list(self.products)},
            )
        if field == "destino" and self.destinations and value not in self.destinations:
            raise ValidationError(
                code="destination_invalid",
                message_key="destination_invalid",
                payload={"field": field, "allowed": list(self.destinations)},
            )


def _coerce_number(field: str, value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip().replace(",", ".")
        if not raw:
            return None
        value = raw
    if isinstance(value, bool):
        raise ValidationError(code="number_invalid", message_key="number_invalid", payload={"field": field})
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(
            code="number_invalid",
            message_key="number_invalid",
            payload={"field": field},
        ) from None
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(code="number_invalid", message_key="number_invalid", payload={"field": field})
    if field == "tonelada" and number < 0:
        raise ValidationError(code="tonnage_negative", message_key="tonnage_negative", payload={"field": field})
    return number


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_field(field: str, value: Any) -> Any:
    if field in NUMERIC_FIELDS:
        return _coerce_number(field, value)
    return _coerce_text(value)


def normalize_create_payload(payload: Any, rules: EntryRules) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError(code="payload_invalid", message_key="payload_invalid")
    fields: Dict[str, Any] = {}
    for field in ENTRY_COLUMNS:
        if field not in payload:
            continue
        value = _coerce_field(field, payload[field])
        if value is None:
            continue
        rules.check(field, value)
        fields[field] = value
    if "status" not in fields:
        rules.check("status", None)
    return fields


def normalize_update_payload(payload: Any, rules: EntryRules) -> Dict[str, Any]:
    if payload is None or payload == {}:
        raise ValidationError(code="no_updates_provided", message_key="no_updates_provided")
    if not isinstance(payload, dict):
        raise ValidationError(code="payload_invalid", message_key="payload_invalid")

    updates: Dict[str, Any] = {}
    for field, raw_value in payload.items():
        if field in SYSTEM_FIELDS or field in CLIENT_FIELDS:
            raise ValidationError(code="field_readonly", message_key="field_readonly", payload={"field": field})
        if field not in ENTRY_COLUMNS:
            raise ValidationError(code="field_unknown", message_key="field_unknown", payload={"field": field})
        value = _coerce_field(field, raw_value)
        rules.check(field, value)
        updates[field] = value
    return updates


def _stock_counts(entries: Iterable[Mapping[str, Any]], key_fields: Sequence[str]) -> List[Dict[str, Any]]:
    groups: Dict[tuple, Dict[str, Any]] = {}
    for entry in entries:
        key = tuple(entry.get(field) for field in key_fields)
        row = groups.get(key)
        if row is None:
            row = {field: entry.get(field) for field in key_fields}
            row["in_stock"] = 0
            row["exited"] = 0
            groups[key] = row
        status = entry.get("status")
        if status in IN_STOCK_STATUSES:
            row["in_stock"] += 1
        elif status in EXITED_STATUSES:
            row["exited"] += 1
    return list(groups.values())


def summarize_by_supplier(entries: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return _stock_counts(entries, ("fornecedor",))


def summarize_by_product_destination(entries: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return _stock_counts(entries, ("descricao_produto", "destino"))


def strip_client_fields(entry: Mapping[str, Any]) -> Dict[str, Any]:
    """Server-bound copy of a cached entry: no id, no client flags."""
    return {
        field: entry[field]
        for field in ENTRY_COLUMNS
        if field in entry and entry[field] is not None
    }
