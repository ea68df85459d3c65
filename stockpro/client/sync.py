from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping

from stockpro.client.backup import import_backup as _import_backup
from stockpro.client.cache import REQUEST_TOKEN_FIELD, ClientCache, is_local_id
from stockpro.client.connectivity import OFFLINE, ONLINE, ConnectivityState
from stockpro.client.http import ApiClient, ApiUnavailableError, ClientError
from stockpro.domain.entries import strip_client_fields
from stockpro.ui_strings import advisory_message


logger = logging.getLogger(__name__)

Notify = Callable[[str], None]


def _log_notify(message: str) -> None:
    logger.warning("client_advisory", extra={"advisory": message})


@dataclass
class ClientViews:
    entries: List[Dict[str, Any]]
    stock_by_supplier: List[Dict[str, Any]]
    stock_by_product_destination: List[Dict[str, Any]]
    source: str


@dataclass
class SyncReport:
    synced: Dict[str, int] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)
    updates_applied: int = 0
    deletes_applied: int = 0
    interrupted: bool = False


class StockClient:
    """Coordinates the API, the local cache and the connectivity state.

    Going online (from ``offline`` or the initial ``checking``) replays the
    offline work: pending creations first, each sent with its request token as
    ``Idempotency-Key`` so a retried replay never inserts twice, then queued
    updates, then queued deletes. Failed items stay queued for the next
    reconnect.
    """

    def __init__(
        self,
        api: ApiClient,
        cache: ClientCache,
        connectivity: ConnectivityState | None = None,
        notify: Notify | None = None,
    ) -> None:
        self.api = api
        self.cache = cache
        self.connectivity = connectivity or ConnectivityState()
        self.notify = notify or _log_notify
        self.last_sync: SyncReport | None = None
        self._advised = False
        self.connectivity.on_change(self._on_connectivity_change)

    def _on_connectivity_change(self, previous: str, current: str) -> None:
        if current != ONLINE:
            return
        self._advised = False
        if self.cache.has_pending_work():
            self.last_sync = self.replay_pending()

    def _go_offline(self, reason: str) -> None:
        logger.warning("client_offline", extra={"reason": reason})
        self.connectivity.set(OFFLINE)

    def _advise_offline(self) -> None:
        if self._advised:
            return
        self._advised = True
        self.notify(advisory_message("offline_queued"))

    def _local_views(self) -> ClientViews:
        return ClientViews(
            entries=self.cache.entries(),
            stock_by_supplier=self.cache.stock_by_supplier(),
            stock_by_product_destination=self.cache.stock_by_product_destination(),
            source="cache",
        )

    def refresh(self) -> ClientViews:
        try:
            self.api.health()
        except ClientError as exc:
            self._go_offline(f"health: {exc}")
            return self._local_views()

        self.connectivity.set(ONLINE)
        if not self.connectivity.is_online:
            # Replay lost the connection again.
            return self._local_views()

        try:
            server_entries = self.api.list_entries()
            by_supplier = self.api.stock_summary()
            by_product_destination = self.api.stock_by_product_destination()
        except ClientError as exc:
            self._go_offline(f"read: {exc}")
            return self._local_views()

        entries = self.cache.replace_with_server(server_entries)
        return ClientViews(
            entries=entries,
            stock_by_supplier=list(by_supplier),
            stock_by_product_destination=list(by_product_destination),
            source="server",
        )

    def create_entry(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        if self.connectivity.is_offline:
            entry = self.cache.add_pending(fields)
            logger.info("entry_queued_offline", extra={"local_id": entry["id"]})
            self._advise_offline()
            return {"id": entry["id"], "isPending": True}
        response = self.api.create_entry(strip_client_fields(fields))
        return {"id": response["id"], "isPending": False}

    def update_entry(self, entry_id: Any, updates: Mapping[str, Any]) -> Dict[str, Any]:
        target = self.cache.resolve_id(entry_id)
        if is_local_id(target):
            # Not on the server yet: the pending creation carries the new values.
            self.cache.apply_local_update(target, updates)
            return {"success": True, "isPending": True}
        if self.connectivity.is_offline:
            self.cache.apply_local_update(target, updates)
            self.cache.queue_update(target, updates)
            self._advise_offline()
            return {"success": True, "isPending": True}
        response = self.api.update_entry(target, dict(updates))
        self.cache.apply_local_update(target, updates)
        return dict(response, isPending=False)

    def delete_entry(self, entry_id: Any) -> Dict[str, Any]:
        target = self.cache.resolve_id(entry_id)
        if is_local_id(target):
            return {"changes": 1 if self.cache.remove(target) else 0}
        if self.connectivity.is_offline:
            self.cache.remove(target)
            self.cache.queue_delete(target)
            self._advise_offline()
            return {"changes": 1, "isPending": True}
        response = self.api.delete_entry(target)
        self.cache.remove(target)
        return response

    def replay_pending(self) -> SyncReport:
        report = SyncReport()

        for entry in self.cache.pending_entries():
            local_id = entry["id"]
            try:
                response = self.api.create_entry(
                    strip_client_fields(entry),
                    request_token=entry.get(REQUEST_TOKEN_FIELD),
                )
            except ApiUnavailableError as exc:
                report.interrupted = True
                self._go_offline(f"replay: {exc}")
                return report
            except ClientError as exc:
                logger.warning("entry_replay_failed", extra={"local_id": local_id, "details": str(exc)})
                report.failed.append(local_id)
                continue
            server_id = int(response["id"])
            self.cache.mark_synced(local_id, server_id)
            report.synced[local_id] = server_id
            logger.info("entry_replayed", extra={"local_id": local_id, "entry_id": server_id})

        for item in self.cache.queued_updates():
            target = self.cache.resolve_id(item["id"])
            if is_local_id(target):
                continue
            try:
                self.api.update_entry(target, item["updates"])
            except ApiUnavailableError as exc:
                report.interrupted = True
                self._go_offline(f"replay: {exc}")
                return report
            except ClientError as exc:
                if exc.status != 404:
                    logger.warning("update_replay_failed", extra={"entry_id": target, "details": str(exc)})
                    continue
                logger.info("update_replay_dropped", extra={"entry_id": target})
            else:
                report.updates_applied += 1
            self.cache.complete_update(item["token"])

        for entry_id in self.cache.queued_deletes():
            try:
                self.api.delete_entry(entry_id)
            except ApiUnavailableError as exc:
                report.interrupted = True
                self._go_offline(f"replay: {exc}")
                return report
            except ClientError as exc:
                logger.warning("delete_replay_failed", extra={"entry_id": entry_id, "details": str(exc)})
                continue
            report.deletes_applied += 1
            self.cache.complete_delete(entry_id)

        logger.info(
            "offline_replay_finished",
            extra={
                "synced": len(report.synced),
                "failed": len(report.failed),
                "updates_applied": report.updates_applied,
                "deletes_applied": report.deletes_applied,
            },
        )
        return report

    def import_backup(self, document: Mapping[str, Any]) -> List[Dict[str, Any]]:
        entries = _import_backup(self.cache, document)
        if any(entry.get("isPending") for entry in entries):
            if self.connectivity.is_online:
                self.last_sync = self.replay_pending()
            elif self.connectivity.is_offline:
                self._advise_offline()
        return self.cache.entries()
