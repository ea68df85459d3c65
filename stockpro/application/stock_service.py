from __future__ import annotations

from stockpro.infrastructure.repositories.stock_repository import StockRepository


class StockService:
    def __init__(self, repository: StockRepository | None = None) -> None:
        self.repository = repository or StockRepository()

    def stock_by_supplier(self, db) -> list[dict]:
        return self.repository.stock_by_supplier(db)

    def stock_by_product_destination(self, db) -> list[dict]:
        return self.repository.stock_by_product_destination(db)
