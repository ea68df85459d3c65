from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Callable, Dict, Tuple


IDEMPOTENCY_HEADER = "Idempotency-Key"

# (method, url, body, headers) -> (status, body). Raises ApiUnavailableError
# when the server cannot be reached at all.
Transport = Callable[[str, str, bytes | None, Dict[str, str]], Tuple[int, bytes]]


class ClientError(RuntimeError):
    """A request the server answered with an error, or could not answer."""

    def __init__(self, message: str, *, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class ApiUnavailableError(ClientError):
    pass


class UrllibTransport:
    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    def __call__(self, method: str, url: str, body: bytes | None, headers: Dict[str, str]) -> Tuple[int, bytes]:
        request = urllib.request.Request(url, data=body, headers=headers, method=method)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                return int(response.status), response.read()
        except urllib.error.HTTPError as exc:
            return int(exc.code), exc.read() if exc.fp else b""
        except urllib.error.URLError as exc:
            raise ApiUnavailableError(f"Erro de conexao com o servidor: {exc.reason}") from exc
        except (TimeoutError, ConnectionError) as exc:
            raise ApiUnavailableError(f"Erro de conexao com o servidor: {exc}") from exc


class ApiClient:
    def __init__(self, base_url: str = "http://localhost:3000", *, transport: Transport | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.transport = transport or UrllibTransport()

    def health(self) -> dict:
        return self.request_json("GET", "/api/health")

    def list_entries(self) -> list:
        return self.request_json("GET", "/api/entries")

    def stock_summary(self) -> list:
        return self.request_json("GET", "/api/stock-summary")

    def stock_by_product_destination(self) -> list:
        return self.request_json("GET", "/api/stock-by-product-destination")

    def create_entry(self, fields: dict, *, request_token: str | None = None) -> dict:
        headers = {IDEMPOTENCY_HEADER: request_token} if request_token else None
        return self.request_json("POST", "/api/entries", payload=fields, headers=headers)

    def update_entry(self, entry_id: int, updates: dict) -> dict:
        return self.request_json("PUT", f"/api/entries/{int(entry_id)}", payload=updates)

    def delete_entry(self, entry_id: int) -> dict:
        return self.request_json("DELETE", f"/api/entries/{int(entry_id)}")

    def parse_nfe(self, content: str) -> dict:
        return self.request_json("POST", "/api/parse-nfe", payload={"content": content})

    def report(self, report_type: str, **filters: str | None) -> dict:
        query = urllib.parse.urlencode({key: value for key, value in filters.items() if value})
        path = f"/api/reports/{urllib.parse.quote(report_type)}"
        return self.request_json("GET", f"{path}?{query}" if query else path)

    def request_json(
        self,
        method: str,
        path: str,
        *,
        payload: Any = None,
        headers: Dict[str, str] | None = None,
    ) -> Any:
        request_headers = {"Accept": "application/json"}
        body = None
        if payload is not None:
            body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})

        status, raw = self.transport(method, f"{self.base_url}{path}", body, request_headers)
        try:
            data = json.loads(raw.decode("utf-8")) if raw else None
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ClientError(f"Resposta invalida do servidor (HTTP {status}).", status=status) from exc

        if status >= 400:
            message = "Erro desconhecido"
            code = None
            if isinstance(data, dict):
                message = str(data.get("error") or message)
                code = data.get("code")
            raise ClientError(message, status=status, code=code)
        return data
