from __future__ import annotations

from typing import Any, Dict

from stockpro.ui_strings import error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
    # When set, the underlying details replace the catalogued message in the
    # response body.
    expose_details = False

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        if self.expose_details and self.details:
            return self.details
        fallback = error_message("unexpected_error", "Internal Server Error")
        return error_message(self.message_key, fallback)

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.user_message(),
            "code": self.code,
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class ValidationError(AppError):
    default_code = "validation_error"
    default_message_key = "payload_invalid"
    default_http_status = 400
    default_critical = False


class NotFoundError(AppError):
    default_code = "not_found"
    default_message_key = "route_not_found"
    default_http_status = 404
    default_critical = False


class EntryNotFoundError(NotFoundError):
    default_code = "entry_not_found"
    default_message_key = "entry_not_found"


class RouteNotFoundError(NotFoundError):
    default_code = "route_not_found"
    default_message_key = "route_not_found"
    expose_details = True


class StorageError(AppError):
    default_code = "storage_error"
    default_message_key = "database_error"
    default_http_status = 500
    default_critical = True
    expose_details = True


class ExtractionError(AppError):
    default_code = "extraction_error"
    default_message_key = "nfe_parse_failed"
    default_http_status = 500
    default_critical = False


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
