import unittest

from stockpro import create_app
from stockpro.client import ApiClient, ClientCache, StockClient
from stockpro.client.backup import (
    BACKUP_TYPE,
    BackupError,
    export_backup,
    export_entries_csv,
    import_backup,
)
from stockpro.client.cache import is_local_id
from stockpro.config import Config
from stockpro.db import close_db
from stockpro.domain.entries import ENTRY_COLUMNS
from tests.helpers.flask_transport import FlaskTransport
from tests.helpers.temp_db import TempDbSandbox


class BackupDocumentTest(unittest.TestCase):
    def setUp(self) -> None:
        self._sandbox = TempDbSandbox(prefix="backup")
        self.cache = ClientCache.in_directory(self._sandbox.client_dir)

    def tearDown(self) -> None:
        self._sandbox.cleanup()

    def test_round_trip_recomputes_pending_flags(self) -> None:
        self.cache.replace_with_server([{"id": 7, "nf_numero": "7", "status": "Estoque"}])
        pending = self.cache.add_pending({"nf_numero": "novo", "status": "Estoque"})

        document = export_backup(self.cache)
        self.assertEqual(document["type"], BACKUP_TYPE)
        self.assertEqual(len(document["entries"]), 2)
        self.assertNotIn("isPending", document["entries"][0])

        restored = ClientCache.in_directory(f"{self._sandbox.client_dir}_restored")
        entries = import_backup(restored, document)
        by_id = {entry["id"]: entry for entry in entries}

        self.assertFalse(by_id[7]["isPending"])
        self.assertNotIn("requestToken", by_id[7])
        self.assertTrue(by_id[pending["id"]]["isPending"])
        self.assertEqual(by_id[pending["id"]]["requestToken"], pending["requestToken"])
        self.assertEqual(restored.entries(), entries)

    def test_round_trip_keeps_every_entry_column(self) -> None:
        full = {column: f"{column}-value" for column in ENTRY_COLUMNS}
        full.update({"tonelada": 32.5, "valor": 1250.0, "status": "Embarcado"})
        self.cache.replace_with_server([dict(full, id=11, created_at="2024-01-02 08:00:00")])
        pending = self.cache.add_pending(full)

        restored = ClientCache.in_directory(f"{self._sandbox.client_dir}_full")
        entries = import_backup(restored, export_backup(self.cache))
        by_id = {entry["id"]: entry for entry in entries}

        for entry_id in (11, pending["id"]):
            for column in ENTRY_COLUMNS:
                self.assertEqual(by_id[entry_id][column], full[column], msg=f"{entry_id}:{column}")
        self.assertEqual(by_id[11]["created_at"], "2024-01-02 08:00:00")

    def test_entries_without_id_become_pending(self) -> None:
        entries = import_backup(
            self.cache,
            {"type": BACKUP_TYPE, "version": 1, "entries": [{"nf_numero": "9"}, {"id": "abc", "nf_numero": "10"}]},
        )
        for entry in entries:
            self.assertTrue(is_local_id(entry["id"]))
            self.assertTrue(entry["isPending"])
            self.assertTrue(entry["requestToken"])

    def test_import_replaces_queues(self) -> None:
        self.cache.queue_delete(3)
        import_backup(self.cache, {"type": BACKUP_TYPE, "version": 1, "entries": []})
        self.assertEqual(self.cache.queued_deletes(), [])
        self.assertEqual(self.cache.entries(), [])

    def test_invalid_documents_are_rejected(self) -> None:
        invalid = [
            [],
            {"type": "outro", "version": 1, "entries": []},
            {"type": BACKUP_TYPE, "version": 2, "entries": []},
            {"type": BACKUP_TYPE, "version": 1, "entries": {}},
            {"type": BACKUP_TYPE, "version": 1, "entries": ["x"]},
        ]
        self.cache.replace_with_server([{"id": 1}])
        for document in invalid:
            with self.assertRaises(BackupError, msg=document):
                import_backup(self.cache, document)
        self.assertEqual(len(self.cache.entries()), 1)

    def test_csv_export(self) -> None:
        text = export_entries_csv([{"id": 1, "nf_numero": "123", "tonelada": 5.0, "fornecedor": "F1", "cte_vli": None}])
        header, row = text.strip().split("\n")
        columns = header.split(",")
        values = row.split(",")
        self.assertEqual(columns[0], "id")
        self.assertEqual(columns[-1], "created_at")
        record = dict(zip(columns, values))
        self.assertEqual(record["nf_numero"], "123")
        self.assertEqual(record["tonelada"], "5.0")
        self.assertEqual(record["cte_vli"], "")


class StockClientImportTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="backup_sync")
        self.app = create_app(self._temp_db.make_config(Config))
        self.transport = FlaskTransport(self.app)
        self.cache = ClientCache.in_directory(self._temp_db.client_dir)
        self.notices = []
        self.client = StockClient(
            ApiClient("http://stockpro.test", transport=self.transport),
            self.cache,
            notify=self.notices.append,
        )
        self.document = {
            "type": BACKUP_TYPE,
            "version": 1,
            "entries": [{"nf_numero": "77", "status": "Estoque", "fornecedor": "F1"}],
        }

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_import_while_online_sends_pending_entries(self) -> None:
        self.client.refresh()
        entries = self.client.import_backup(self.document)
        self.assertEqual(len(entries), 1)
        self.assertFalse(entries[0]["isPending"])
        self.assertIsInstance(entries[0]["id"], int)

        server = self.app.test_client().get("/api/entries").get_json()
        self.assertEqual([entry["nf_numero"] for entry in server], ["77"])

    def test_import_while_offline_waits_for_reconnect(self) -> None:
        self.transport.reachable = False
        self.client.refresh()
        entries = self.client.import_backup(self.document)
        self.assertTrue(entries[0]["isPending"])
        self.assertEqual(len(self.notices), 1)

        self.transport.reachable = True
        views = self.client.refresh()
        self.assertEqual([entry["nf_numero"] for entry in views.entries], ["77"])
        self.assertFalse(views.entries[0]["isPending"])

    def test_import_while_checking_waits_silently(self) -> None:
        entries = self.client.import_backup(self.document)
        self.assertTrue(entries[0]["isPending"])
        self.assertEqual(self.notices, [])
        self.assertEqual(self.transport.calls_for("POST", "/api/entries"), [])

        views = self.client.refresh()
        self.assertFalse(views.entries[0]["isPending"])
        self.assertEqual(len(self.transport.calls_for("POST", "/api/entries")), 1)


if __name__ == "__main__":
    unittest.main()
