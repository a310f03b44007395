import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, Optional

from cicd_console.services.audit_service import AuditService
from cicd_console.utils.wsgi import get_client_ip, json_response, materialize, status_code

logger = logging.getLogger(__name__)

SECURITY_HEADERS = [
    ("X-Frame-Options", "DENY"),
    ("X-Content-Type-Options", "nosniff"),
    ("X-XSS-Protection", "1; mode=block"),
    ("Referrer-Policy", "strict-origin-when-cross-origin"),
]


@dataclass
class LoginAttempt:
    failure_count: int
    window_start: float
    blocked_until: Optional[float] = None


class LoginAttemptStore:
    """
    IP별 로그인 실패 기록을 보관하는 프로세스 메모리 저장소입니다.

    실패 카운터는 첫 실패 시각(window_start)부터 계산하며, 이후 실패가 있어도
    window_start는 갱신되지 않습니다. 로그인에 성공해야만 기록이 삭제됩니다.
    """

    def __init__(self, max_failures: int = 5, window_seconds: int = 300, block_seconds: int = 900):
        self.max_failures = max_failures
        self.window_seconds = window_seconds
        self.block_seconds = block_seconds
        self._attempts: Dict[str, LoginAttempt] = {}
        self._lock = threading.Lock()

    def is_blocked(self, ip: str, now: float) -> Optional[float]:
        """
        IP가 차단 중이면 차단 해제 시각을 반환합니다.
        차단 시간이 지났으면 차단만 해제하고 None을 반환합니다.
        """
        with self._lock:
            attempt = self._attempts.get(ip)
            if attempt is None or attempt.blocked_until is None:
                return None
            if now < attempt.blocked_until:
                return attempt.blocked_until
            attempt.blocked_until = None
            return None

    def record_failure(self, ip: str, now: float) -> LoginAttempt:
        """
        로그인 실패를 기록하고, 기준을 넘으면 차단합니다.
        반환값의 blocked_until이 설정되어 있으면 이번 실패로 차단된 것입니다.
        """
        with self._lock:
            attempt = self._attempts.get(ip)
            if attempt is None:
                attempt = self._attempts[ip] = LoginAttempt(failure_count=1, window_start=now)
            else:
                attempt.failure_count += 1

            if attempt.failure_count >= self.max_failures and now - attempt.window_start <= self.window_seconds:
                attempt.blocked_until = now + self.block_seconds
            return replace(attempt)

    def record_success(self, ip: str) -> None:
        with self._lock:
            self._attempts.pop(ip, None)

    def snapshot(self, ip: str) -> Optional[LoginAttempt]:
        with self._lock:
            attempt = self._attempts.get(ip)
            return replace(attempt) if attempt else None


class BruteForceGuard:
    """
    로그인 실패가 반복되는 IP를 일정 시간 차단하는 WSGI 미들웨어입니다.
    통과한 모든 응답에 보안 헤더를 추가합니다.
    """

    def __init__(self, app, store: LoginAttemptStore, audit_service: Optional[AuditService] = None,
                 clock: Callable[[], float] = time.time, trusted_proxies: Iterable[str] = ()):
        self.app = app
        self.trusted_proxies = tuple(trusted_proxies)
        self.store = store
        self.audit_service = audit_service
        self.clock = clock

    def __call__(self, environ, start_response):
        ip = get_client_ip(environ, self.trusted_proxies)

        blocked_until = self.store.is_blocked(ip, self.clock())
        if blocked_until is not None:
            retry_after = max(int(blocked_until - self.clock()), 1)
            return json_response(
                start_response, 429,
                {"success": False, "message": "Too many requests. Please try again later."},
                [("Retry-After", str(retry_after))] + SECURITY_HEADERS,
            )

        captured = {}

        def guarded_start_response(status, headers, exc_info=None):
            captured["status"] = status
            return start_response(status, list(headers) + SECURITY_HEADERS, exc_info)

        result = self.app(environ, guarded_start_response)

        if self._is_login_attempt(environ):
            if "status" not in captured:
                # start_response를 첫 반복에서 호출하는 앱
                result = materialize(result)
            if "status" in captured:
                self._record(ip, status_code(captured["status"]))
        return result

    @staticmethod
    def _is_login_attempt(environ) -> bool:
        return environ.get("REQUEST_METHOD") == "POST" and environ.get("PATH_INFO") == "/login"

    def _record(self, ip: str, status: int):
        if status < 400:
            self.store.record_success(ip)
            return

        attempt = self.store.record_failure(ip, self.clock())
        if attempt.blocked_until is None:
            return

        logger.warning("Blocked %s after %d failed logins", ip, attempt.failure_count)
        if self.audit_service is not None:
            self.audit_service.submit(
                log_type="security",
                level="warn",
                message=f"IP address {ip} blocked after too many failed logins",
                ip_address=ip,
                source="security",
                details={"failed_attempts": attempt.failure_count},
            )
