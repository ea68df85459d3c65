from __future__ import annotations

from stockpro.domain.entries import EXITED_STATUSES, IN_STOCK_STATUSES
from stockpro.infrastructure.repositories.base import BaseRepository


def _status_list(statuses) -> str:
    return ", ".join(f"'{status}'" for status in sorted(statuses))


_IN_STOCK_SUM = f"SUM(CASE WHEN status IN ({_status_list(IN_STOCK_STATUSES)}) THEN 1 ELSE 0 END)"
_EXITED_SUM = f"SUM(CASE WHEN status IN ({_status_list(EXITED_STATUSES)}) THEN 1 ELSE 0 END)"


class StockRepository(BaseRepository):
    """Full-scan GROUP BY projections over ``entries``; nothing is cached."""

    def stock_by_supplier(self, db) -> list[dict]:
        with self.storage_errors("stock_by_supplier"):
            rows = db.execute(
                f"""
                SELECT
                    fornecedor,
                    {_IN_STOCK_SUM} AS in_stock,
                    {_EXITED_SUM} AS exited
                FROM entries
                GROUP BY fornecedor
                ORDER BY fornecedor
                """
            ).fetchall()
            return [_with_int_counts(row) for row in self.rows_to_dicts(rows)]

    def stock_by_product_destination(self, db) -> list[dict]:
        with self.storage_errors("stock_by_product_destination"):
            rows = db.execute(
                f"""
                SELECT
                    descricao_produto,
                    destino,
                    {_IN_STOCK_SUM} AS in_stock,
                    {_EXITED_SUM} AS exited
                FROM entries
                GROUP BY descricao_produto, destino
                ORDER BY descricao_produto, destino
                """
            ).fetchall()
            return [_with_int_counts(row) for row in self.rows_to_dicts(rows)]


def _with_int_counts(row: dict) -> dict:
    # Postgres returns SUM() as Decimal.
    row["in_stock"] = int(row.get("in_stock") or 0)
    row["exited"] = int(row.get("exited") or 0)
    return row
