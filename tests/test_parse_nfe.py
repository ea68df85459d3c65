import io
import json
import unittest
import urllib.error
from unittest.mock import MagicMock, patch

from stockpro import create_app
from stockpro.config import Config
from stockpro.db import close_db
from stockpro.errors import ExtractionError
from stockpro.integrations.nfe_extractor import GeminiNfeExtractor, build_prompt
from stockpro.observability import metrics_snapshot, reset_metrics_for_tests
from tests.helpers.temp_db import TempDbSandbox


EXTRACTED = {
    "chave_acesso": "32240112345678000199550010000001231000001234",
    "nf_numero": "123",
    "valor": 15432.1,
    "data_nf": "2024-01-05",
    "fornecedor": "Mineradora Capixaba",
    "descricao_produto": "Cal Calcítico",
    "tonelada": 32.5,
}


def _model_response(text: str) -> MagicMock:
    body = json.dumps({"candidates": [{"content": {"parts": [{"text": text}]}}]}).encode("utf-8")
    response = MagicMock()
    response.read.return_value = body
    response.__enter__.return_value = response
    return response


class ParseNfeApiTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()
        self._temp_db = TempDbSandbox(prefix="parse_nfe")
        self.app = create_app(self._temp_db.make_config(Config))
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_missing_content_returns_400(self) -> None:
        for payload in ({}, {"content": ""}, {"content": "   "}, {"content": 42}):
            response = self.client.post("/api/parse-nfe", json=payload)
            self.assertEqual(response.status_code, 400, msg=payload)
            self.assertEqual(response.get_json()["error"], "Content is required")

    @patch("stockpro.integrations.nfe_extractor.urllib.request.urlopen")
    def test_model_fields_are_forwarded_verbatim(self, mock_urlopen) -> None:
        mock_urlopen.return_value = _model_response(json.dumps(EXTRACTED))

        response = self.client.post("/api/parse-nfe", json={"content": "<nfeProc>...</nfeProc>"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), EXTRACTED)

        request = mock_urlopen.call_args.args[0]
        self.assertTrue(request.full_url.endswith("/gemini-2.5-flash:generateContent"))
        self.assertEqual(request.get_header("X-goog-api-key"), "test-key")
        sent = json.loads(request.data.decode("utf-8"))
        self.assertEqual(sent["generationConfig"]["responseMimeType"], "application/json")
        self.assertNotIn("tonelada", sent["generationConfig"]["responseSchema"]["required"])
        self.assertIn("<nfeProc>...</nfeProc>", sent["contents"][0]["parts"][0]["text"])
        self.assertEqual(metrics_snapshot()["nfe_extraction"], {"ok": 1})

    @patch("stockpro.integrations.nfe_extractor.urllib.request.urlopen")
    def test_unparsable_model_output_returns_generic_500(self, mock_urlopen) -> None:
        mock_urlopen.return_value = _model_response("isto nao e json")

        response = self.client.post("/api/parse-nfe", json={"content": "NF 123"})
        self.assertEqual(response.status_code, 500)
        body = response.get_json()
        self.assertEqual(body["error"], "Failed to parse NF-e")
        self.assertEqual(body["code"], "extraction_error")
        self.assertEqual(metrics_snapshot()["nfe_extraction"], {"failed": 1})

    @patch("stockpro.integrations.nfe_extractor.urllib.request.urlopen")
    def test_model_http_error_returns_generic_500(self, mock_urlopen) -> None:
        mock_urlopen.side_effect = urllib.error.HTTPError(
            "https://example.invalid",
            429,
            "Too Many Requests",
            {},
            io.BytesIO(b'{"error":{"message":"quota"}}'),
        )

        response = self.client.post("/api/parse-nfe", json={"content": "NF 123"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()["error"], "Failed to parse NF-e")
        self.assertNotIn("quota", response.get_data(as_text=True))


    @patch("stockpro.integrations.nfe_extractor.urllib.request.urlopen")
    def test_malformed_model_envelopes_return_generic_500(self, mock_urlopen) -> None:
        bodies = (
            b'{"candidates": ["oops"]}',
            b'{"candidates": {"content": {}}}',
            b'{"candidates": [{"content": ["parts"]}]}',
            b'{"candidates": [{"content": {"parts": "text"}}]}',
            b"\xff\xfe\x00",
        )
        for body in bodies:
            response = MagicMock()
            response.read.return_value = body
            response.__enter__.return_value = response
            mock_urlopen.return_value = response

            result = self.client.post("/api/parse-nfe", json={"content": "NF 123"})
            self.assertEqual(result.status_code, 500, msg=body)
            self.assertEqual(result.get_json()["code"], "extraction_error", msg=body)
            self.assertEqual(result.get_json()["error"], "Failed to parse NF-e", msg=body)
        self.assertEqual(metrics_snapshot()["nfe_extraction"], {"failed": len(bodies)})


class GeminiNfeExtractorTest(unittest.TestCase):
    def test_missing_api_key_fails_without_calling_model(self) -> None:
        extractor = GeminiNfeExtractor(api_key="", model="gemini-2.5-flash", endpoint="https://example.invalid")
        with patch("stockpro.integrations.nfe_extractor.urllib.request.urlopen") as mock_urlopen:
            with self.assertRaises(ExtractionError):
                extractor.extract("NF 123")
        mock_urlopen.assert_not_called()

    def test_non_object_json_is_rejected(self) -> None:
        extractor = GeminiNfeExtractor(api_key="k", model="m", endpoint="https://example.invalid")
        with patch(
            "stockpro.integrations.nfe_extractor.urllib.request.urlopen",
            return_value=_model_response("[1, 2, 3]"),
        ):
            with self.assertRaises(ExtractionError):
                extractor.extract("NF 123")

    def test_empty_candidates_are_rejected(self) -> None:
        extractor = GeminiNfeExtractor(api_key="k", model="m", endpoint="https://example.invalid")
        response = MagicMock()
        response.read.return_value = b'{"candidates": []}'
        response.__enter__.return_value = response
        with patch("stockpro.integrations.nfe_extractor.urllib.request.urlopen", return_value=response):
            with self.assertRaises(ExtractionError):
                extractor.extract("NF 123")

    def test_candidate_without_text_parts_is_rejected(self) -> None:
        extractor = GeminiNfeExtractor(api_key="k", model="m", endpoint="https://example.invalid")
        for body in (b'{"candidates": [null]}', b'{"candidates": [{"content": {}}]}', b'{"candidates": "x"}'):
            response = MagicMock()
            response.read.return_value = body
            response.__enter__.return_value = response
            with patch("stockpro.integrations.nfe_extractor.urllib.request.urlopen", return_value=response):
                with self.assertRaises(ExtractionError, msg=body):
                    extractor.extract("NF 123")

    def test_undecodable_http_error_body_is_extraction_error(self) -> None:
        extractor = GeminiNfeExtractor(api_key="k", model="m", endpoint="https://example.invalid")
        error = urllib.error.HTTPError("https://example.invalid", 502, "Bad Gateway", {}, io.BytesIO(b"\xff\xfe"))
        with patch("stockpro.integrations.nfe_extractor.urllib.request.urlopen", side_effect=error):
            with self.assertRaises(ExtractionError) as ctx:
                extractor.extract("NF 123")
        self.assertIn("502", ctx.exception.details)

    def test_network_failure_is_extraction_error(self) -> None:
        extractor = GeminiNfeExtractor(api_key="k", model="m", endpoint="https://example.invalid")
        with patch(
            "stockpro.integrations.nfe_extractor.urllib.request.urlopen",
            side_effect=urllib.error.URLError("dns"),
        ):
            with self.assertRaises(ExtractionError) as ctx:
                extractor.extract("NF 123")
        self.assertIn("dns", ctx.exception.details)

    def test_prompt_lists_expected_fields(self) -> None:
        prompt = build_prompt("XML")
        for label in ("Chave de Acesso", "Número da NF", "Valor Total", "YYYY-MM-DD", "Fornecedor", "Tonelada"):
            self.assertIn(label, prompt)
        self.assertTrue(prompt.endswith("Conteúdo: XML"))

    def test_from_config_reads_app_settings(self) -> None:
        extractor = GeminiNfeExtractor.from_config(
            {"GEMINI_API_KEY": " abc ", "AI_MODEL": "gemini-x", "AI_ENDPOINT": "https://host/v1/models/", "AI_TIMEOUT_SECONDS": 5}
        )
        self.assertEqual(extractor.api_key, "abc")
        self.assertEqual(extractor._url(), "https://host/v1/models/gemini-x:generateContent")
        self.assertEqual(extractor.timeout, 5)


if __name__ == "__main__":
    unittest.main()
