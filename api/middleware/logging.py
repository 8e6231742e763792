"""
请求/响应日志中间件
记录 HTTP 请求与响应（含耗时），支付 webhook 的原始报文默认不落日志
"""
import json
import time
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger
from core.settings import payment_settings


logger = get_logger(__name__)

WEBHOOK_PATH_PREFIX = "/webhooks/"


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    日志记录中间件

    1. request_started / request_completed（或 client/server error）
    2. 请求体按开关记录，并对敏感字段脱敏
    3. webhook 请求体仅在 PAYMENT__LOG_WEBHOOK_PAYLOADS 开启时记录
    """

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    SENSITIVE_FIELDS = {
        "password", "token", "secret", "secret_key", "api_key", "access_token",
        "authorization_code", "pin", "cvv", "card_number",
    }

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.enable_body_log_default: bool = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT
        self.max_body_log_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start_time = time.time()
        request_info = await self._get_request_info(request)
        logger.info("request_started", **request_info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=time.time() - start_time,
                error=str(exc),
                error_type=type(exc).__name__,
                **request_info,
                exc_info=True,
            )
            raise

        duration = time.time() - start_time
        self._log_response(response, duration, request_info)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    async def _get_request_info(self, request: Request) -> dict:
        info: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
        }
        if request.query_params:
            info["query_params"] = dict(request.query_params)

        if request.method in ("POST", "PUT", "PATCH") and self._should_log_body(request):
            body = await self._extract_and_sanitize_body(request)
            if body is not None:
                info["body"] = body

        user_agent = request.headers.get("User-Agent")
        if user_agent:
            info["user_agent"] = user_agent
        return info

    def _should_log_body(self, request: Request) -> bool:
        if request.url.path.startswith(WEBHOOK_PATH_PREFIX):
            return payment_settings.log_webhook_payloads
        header = (request.headers.get("X-Log-Body") or "").lower()
        if header in {"true", "1", "yes"}:
            return True
        if header in {"false", "0", "no"}:
            return False
        return bool(self.enable_body_log_default and settings.DEBUG)

    async def _extract_and_sanitize_body(self, request: Request) -> Any:
        body = await request.body()
        if not body:
            return None

        snippet = body[: self.max_body_log_bytes]
        text = snippet.decode("utf-8", errors="ignore")
        if "application/json" not in request.headers.get("content-type", "").lower():
            return {"bytes": len(body)}
        try:
            return self._sanitize(json.loads(text))
        except ValueError:
            # 被截断或非法 JSON：只记录长度
            return {"bytes": len(body), "truncated": len(body) > self.max_body_log_bytes}

    def _sanitize(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: "***" if key.lower() in self.SENSITIVE_FIELDS else self._sanitize(value)
                for key, value in data.items()
            }
        if isinstance(data, list):
            return [self._sanitize(item) for item in data]
        return data

    def _log_response(self, response: Response, duration: float, request_info: dict):
        log_data = {"status_code": response.status_code, "duration": duration, **request_info}
        if response.status_code < 400:
            logger.info("request_completed", **log_data)
        elif response.status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)
