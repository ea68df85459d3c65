import unittest

from stockpro import create_app
from stockpro.application.report_service import ReportService
from stockpro.config import Config
from stockpro.db import close_db
from stockpro.domain.contracts import ReportRequestInput
from stockpro.errors import ValidationError
from tests.helpers.temp_db import TempDbSandbox


ENTRIES = [
    {"fornecedor": "Mineradora Norte", "data_nf": "2024-01-10", "nf_numero": "1", "status": "Estoque"},
    {"fornecedor": "Mineradora Sul", "data_nf": "2024-02-15", "nf_numero": "2", "status": "Embarcado"},
    {"fornecedor": "Cal Norte", "data_nf": "2024-03-01", "nf_numero": "3", "status": "Estoque"},
    {"fornecedor": "Sem Data", "data_nf": None, "nf_numero": "4", "status": "Estoque"},
]


class ReportServiceTest(unittest.TestCase):
    def setUp(self) -> None:
        self.service = ReportService()

    def _numbers(self, **filters):
        return [entry["nf_numero"] for entry in self.service.filter_entries(ENTRIES, **filters)]

    def test_date_range_is_inclusive(self) -> None:
        self.assertEqual(self._numbers(start_date="2024-01-10", end_date="2024-02-15"), ["1", "2"])
        self.assertEqual(self._numbers(start_date="2024-02-01"), ["2", "3"])

    def test_supplier_filter_is_case_insensitive_substring(self) -> None:
        self.assertEqual(self._numbers(fornecedor="norte"), ["1", "3"])
        self.assertEqual(self._numbers(fornecedor="  "), ["1", "2", "3", "4"])

    def test_unknown_report_type(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.service.build(ENTRIES, ReportRequestInput(report_type="vendas"))
        self.assertEqual(ctx.exception.code, "report_type_invalid")

    def test_performance_columns(self) -> None:
        report = self.service.build(
            [{"nf_numero": "1", "placa_veiculo": "ABC1234", "hora_chegada": "08:00"}],
            ReportRequestInput(report_type="Performance"),
        )
        self.assertEqual(report["report"], "performance")
        self.assertEqual(report["headers"][:2], ["NF", "Placa"])
        self.assertEqual(report["rows"], [["1", "ABC1234", "08:00", None, None]])


class ReportsApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="reports_api")
        self.app = create_app(self._temp_db.make_config(Config))
        self.client = self.app.test_client()
        self.client.post(
            "/api/entries",
            json={
                "fornecedor": "F1",
                "descricao_produto": "Cal Calcítico",
                "tonelada": 5,
                "status": "Estoque",
                "data_nf": "2024-01-01",
            },
        )
        self.client.post(
            "/api/entries",
            json={"fornecedor": "F2", "status": "Embarcado", "data_nf": "2024-06-01"},
        )

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_json_report_with_filters(self) -> None:
        response = self.client.get("/api/reports/estoque?end=2024-03-31")
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["headers"], ["Fornecedor", "Produto", "Tonelada", "Status", "Data NF"])
        self.assertEqual(body["rows"], [["F1", "Cal Calcítico", 5.0, "Estoque", "2024-01-01"]])

    def test_csv_report(self) -> None:
        response = self.client.get("/api/reports/estoque?fornecedor=f1&format=csv")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.mimetype.startswith("text/csv"))
        self.assertIn("relatorio_estoque.csv", response.headers["Content-Disposition"])
        lines = response.get_data(as_text=True).strip().split("\n")
        self.assertEqual(lines, ["Fornecedor,Produto,Tonelada,Status,Data NF", "F1,Cal Calcítico,5.0,Estoque,2024-01-01"])

    def test_unknown_report_type_returns_400(self) -> None:
        response = self.client.get("/api/reports/vendas")
        self.assertEqual(response.status_code, 400)
        body = response.get_json()
        self.assertEqual(body["code"], "report_type_invalid")
        self.assertIn("estoque", body["allowed"])


if __name__ == "__main__":
    unittest.main()
