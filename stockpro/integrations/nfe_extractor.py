from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Mapping

from stockpro.errors import ExtractionError


logger = logging.getLogger(__name__)

NFE_FIELDS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "chave_acesso": {"type": "STRING"},
        "nf_numero": {"type": "STRING"},
        "valor": {"type": "NUMBER"},
        "data_nf": {"type": "STRING"},
        "fornecedor": {"type": "STRING"},
        "descricao_produto": {"type": "STRING"},
        "tonelada": {"type": "NUMBER"},
    },
    "required": ["chave_acesso", "nf_numero", "valor", "data_nf", "fornecedor", "descricao_produto"],
}

_PROMPT_TEMPLATE = """Extraia os seguintes dados desta Nota Fiscal (pode ser XML ou texto):
- Chave de Acesso
- Número da NF
- Valor Total
- Data da NF (formato YYYY-MM-DD)
- Fornecedor
- Descrição do Produto
- Tonelada (se disponível, senão 0)

Conteúdo: {content}"""


def build_prompt(content: str) -> str:
    return _PROMPT_TEMPLATE.format(content=content)


class GeminiNfeExtractor:
    """Forwards invoice text to Gemini and returns the model's JSON verbatim."""

    def __init__(self, *, api_key: str | None, model: str, endpoint: str, timeout: int = 60) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "GeminiNfeExtractor":
        return cls(
            api_key=config.get("GEMINI_API_KEY"),
            model=str(config.get("AI_MODEL") or "gemini-2.5-flash"),
            endpoint=str(config.get("AI_ENDPOINT") or "https://generativelanguage.googleapis.com/v1beta/models"),
            timeout=int(config.get("AI_TIMEOUT_SECONDS") or 60),
        )

    def extract(self, content: str) -> dict:
        if not self.api_key:
            raise ExtractionError(details="GEMINI_API_KEY nao configurada no ambiente.")

        body = {
            "contents": [{"role": "user", "parts": [{"text": build_prompt(content)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": NFE_FIELDS_SCHEMA,
            },
        }
        logger.info("nfe_extraction_started", extra={"model": self.model, "prompt_chars": len(content)})
        response = self._request_json(self._url(), body)
        text = _response_text(response)
        try:
            fields = json.loads(text or "{}")
        except json.JSONDecodeError as exc:
            raise ExtractionError(details="Modelo retornou JSON invalido.") from exc
        if not isinstance(fields, dict):
            raise ExtractionError(details="Modelo retornou JSON nao-objeto.")
        logger.info("nfe_extraction_finished", extra={"model": self.model, "fields": sorted(fields)})
        return fields

    def _url(self) -> str:
        model = urllib.parse.quote(self.model, safe="-._")
        return f"{self.endpoint}/{model}:generateContent"

    def _request_json(self, url: str, payload: dict) -> object:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }
        data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        request = urllib.request.Request(url, data=data, headers=headers, method="POST")
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                raw = response.read().decode("utf-8")
                if not raw:
                    return {}
                return json.loads(raw)
        except urllib.error.HTTPError as exc:  # noqa: PERF203
            error_body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            raise ExtractionError(details=f"AI HTTP {exc.code}: {error_body[:200]}") from exc
        except urllib.error.URLError as exc:
            raise ExtractionError(details=f"Erro de conexao com o modelo: {exc.reason}") from exc
        except TimeoutError as exc:
            raise ExtractionError(details="Tempo esgotado aguardando o modelo.") from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ExtractionError(details="Resposta do modelo nao e JSON.") from exc


def _response_text(response: object) -> str:
    if not isinstance(response, dict):
        raise ExtractionError(details="Resposta inesperada do modelo (JSON nao-objeto).")
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        raise ExtractionError(details="Modelo nao retornou candidatos.")
    candidate = candidates[0]
    content = candidate.get("content") if isinstance(candidate, dict) else None
    if not isinstance(content, dict):
        raise ExtractionError(details="Candidato do modelo sem conteudo.")
    parts = content.get("parts")
    if not isinstance(parts, list):
        raise ExtractionError(details="Candidato do modelo sem partes de texto.")
    return "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict))
