import logging
import secrets
import time
from typing import Callable, Iterable, Optional

from cicd_console.middleware.request_gate import ENVIRON_USER_KEY, STATIC_ASSET_PATTERN
from cicd_console.services.audit_service import AuditService
from cicd_console.utils.wsgi import get_client_ip, materialize, status_code

logger = logging.getLogger(__name__)

ENVIRON_REQUEST_ID_KEY = "cicd_console.request_id"
SKIPPED_PATHS = ("/api/health",)
LOGGING_LEVELS = {"info": logging.INFO, "warn": logging.WARNING, "error": logging.ERROR}


def level_for_status(status: int) -> str:
    if 400 <= status < 500:
        return "warn"
    if status >= 500:
        return "error"
    return "info"


def should_skip_logging(path: str) -> bool:
    return path in SKIPPED_PATHS or bool(STATIC_ASSET_PATTERN.search(path))


class RequestLogger:
    """
    모든 요청에 요청 ID를 부여하고, 처리 결과(상태 코드, 소요 시간)를 기록하는 WSGI 미들웨어입니다.
    정적 파일과 헬스 체크 요청은 기록하지 않습니다.
    하위 앱에서 발생한 예외는 기록한 뒤 그대로 다시 발생시킵니다.
    """

    def __init__(self, app, audit_service: Optional[AuditService] = None,
                 clock: Callable[[], float] = time.perf_counter, trusted_proxies: Iterable[str] = ()):
        self.app = app
        self.audit_service = audit_service
        self.clock = clock
        self.trusted_proxies = tuple(trusted_proxies)

    def __call__(self, environ, start_response):
        request_id = secrets.token_hex(8)
        environ[ENVIRON_REQUEST_ID_KEY] = request_id
        started = self.clock()
        captured = {}

        def logging_start_response(status, headers, exc_info=None):
            captured["status"] = status
            return start_response(status, list(headers) + [("X-Request-ID", request_id)], exc_info)

        try:
            result = self.app(environ, logging_start_response)
            if "status" not in captured:
                result = materialize(result)
        except Exception as e:
            self._log_error(environ, request_id, e)
            raise

        if "status" in captured and not should_skip_logging(environ.get("PATH_INFO", "")):
            self._log_request(environ, request_id, status_code(captured["status"]), self.clock() - started)
        return result

    def _user_id(self, environ):
        principal = environ.get(ENVIRON_USER_KEY)
        return principal["id"] if principal else None

    def _log_request(self, environ, request_id: str, status: int, duration: float):
        method = environ.get("REQUEST_METHOD", "")
        path = environ.get("PATH_INFO", "")
        level = level_for_status(status)
        message = f"{method} {path} - {status} ({duration:.3f}s)"

        logger.log(LOGGING_LEVELS[level], message)
        if self.audit_service is None:
            return
        self.audit_service.submit(
            log_type="system",
            level=level,
            message=message,
            user_id=self._user_id(environ),
            ip_address=get_client_ip(environ, self.trusted_proxies),
            source="web_request",
            details={
                "request_id": request_id,
                "method": method,
                "path": path,
                "status": status,
                "duration": round(duration, 3),
                "user_agent": environ.get("HTTP_USER_AGENT"),
                "referer": environ.get("HTTP_REFERER"),
            },
        )

    def _log_error(self, environ, request_id: str, error: Exception):
        method = environ.get("REQUEST_METHOD", "")
        path = environ.get("PATH_INFO", "")
        logger.exception("Request %s failed: %s %s", request_id, method, path)
        if self.audit_service is None:
            return
        self.audit_service.submit(
            log_type="system",
            level="error",
            message=f"Request failed: {error}",
            user_id=self._user_id(environ),
            ip_address=get_client_ip(environ, self.trusted_proxies),
            source="web_request",
            details={
                "request_id": request_id,
                "method": method,
                "path": path,
                "error_class": type(error).__name__,
                "error_message": str(error),
            },
        )
