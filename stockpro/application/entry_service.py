from __future__ import annotations

import logging

from stockpro.domain.contracts import EntryCreateInput, EntryUpdateInput, ServiceOutput
from stockpro.domain.entries import EntryRules, normalize_create_payload, normalize_update_payload
from stockpro.errors import EntryNotFoundError, StorageError
from stockpro.infrastructure.repositories.entry_repository import EntryRepository


logger = logging.getLogger(__name__)

# Ids are 64-bit signed integers in both backends; anything outside cannot exist.
_MIN_ENTRY_ID = -(2**63)
_MAX_ENTRY_ID = 2**63 - 1


def _storable_id(entry_id: int) -> bool:
    return _MIN_ENTRY_ID <= entry_id <= _MAX_ENTRY_ID


class EntryService:
    def __init__(self, repository: EntryRepository | None = None) -> None:
        self.repository = repository or EntryRepository()

    def list_entries(self, db) -> list[dict]:
        return self.repository.list_all(db)

    def create_entry(self, db, *, create_input: EntryCreateInput, rules: EntryRules) -> ServiceOutput:
        fields = normalize_create_payload(create_input.payload, rules)
        token = (create_input.request_token or "").strip() or None

        if token:
            existing_id = self.repository.find_entry_id_by_token(db, token)
            if existing_id is not None:
                logger.info("entry_create_replayed", extra={"entry_id": existing_id, "request_token": token})
                return ServiceOutput(payload={"id": existing_id, "replayed": True}, status_code=200)

        try:
            entry_id = self.repository.create(db, fields, request_token=token)
        except StorageError as exc:
            if not token or not self.repository.is_duplicate_token_error(exc):
                raise
            # Another request with the same token won the insert.
            db.rollback()
            existing_id = self.repository.find_entry_id_by_token(db, token)
            if existing_id is None:
                raise
            return ServiceOutput(payload={"id": existing_id, "replayed": True}, status_code=200)

        logger.info("entry_created", extra={"entry_id": entry_id, "fields": sorted(fields)})
        return ServiceOutput(payload={"id": entry_id}, status_code=200)

    def update_entry(self, db, *, update_input: EntryUpdateInput, rules: EntryRules) -> ServiceOutput:
        updates = normalize_update_payload(update_input.payload, rules)
        changes = 0
        if _storable_id(update_input.entry_id):
            changes = self.repository.update(db, update_input.entry_id, updates)
        if changes == 0:
            raise EntryNotFoundError(payload={"id": update_input.entry_id})
        logger.info("entry_updated", extra={"entry_id": update_input.entry_id, "fields": sorted(updates)})
        return ServiceOutput(payload={"success": True})

    def delete_entry(self, db, *, entry_id: int) -> ServiceOutput:
        changes = self.repository.delete(db, entry_id) if _storable_id(entry_id) else 0
        if changes == 0:
            logger.info("entry_delete_missing", extra={"entry_id": entry_id})
        else:
            logger.info("entry_deleted", extra={"entry_id": entry_id})
        return ServiceOutput(payload={"changes": changes})
