import logging
import re
from datetime import datetime
from typing import Iterable, Optional, Tuple
from urllib.parse import quote

from cicd_console.database import models
from cicd_console.services.audit_service import AuditService
from cicd_console.services.authorization_service import AuthorizationService
from cicd_console.utils.wsgi import (
    get_client_ip, get_request_path, get_session_token, html_response, json_response,
    redirect_response, wants_json,
)

logger = logging.getLogger(__name__)

PUBLIC_PATH_PREFIXES = ("/login", "/logout", "/api/health", "/api/version", "/public")
STATIC_ASSET_PATTERN = re.compile(r"\.(css|js|png|jpg|gif|ico|svg)$")

METHOD_PERMISSIONS = {
    "GET": "read",
    "HEAD": "read",
    "OPTIONS": "read",
    "POST": "write",
    "PUT": "write",
    "PATCH": "write",
    "DELETE": "admin",
}

# /system/<segment> -> 시스템 기능 키
SYSTEM_PATH_FEATURES = {
    "users": "user_management",
    "logs": "log_view",
    "monitor": "system_monitor",
}

# (경로 패턴, 경로 분류) 순서대로 처음 일치하는 항목을 사용합니다.
ROUTE_FAMILIES = [
    (re.compile(r"^/admin"), "admin"),
    (re.compile(r"^/system(?:/([^/]+))?"), "system"),
    (re.compile(r"^/projects/(\d+)"), "project"),
    (re.compile(r"^/resources/(\d+)"), "resource"),
]

ENVIRON_USER_KEY = "cicd_console.user"


def is_public_path(path: str) -> bool:
    return path.startswith(PUBLIC_PATH_PREFIXES) or bool(STATIC_ASSET_PATTERN.search(path))


def classify(method: str, path: str) -> Tuple[str, Optional[str], str]:
    """
    요청을 (경로 분류, 경로 인자, 필요한 권한 종류)로 분류합니다.
    어느 분류에도 속하지 않으면 분류는 'unmatched'입니다.
    """
    permission_type = METHOD_PERMISSIONS.get(method.upper(), "read")
    for pattern, family in ROUTE_FAMILIES:
        if match := pattern.match(path):
            return family, (match.group(1) if match.groups() else None), permission_type
    return "unmatched", None, permission_type


class RequestGate:
    """
    보호된 경로에 대한 요청마다 로그인 여부와 권한을 확인하는 WSGI 미들웨어입니다.
    허용된 요청의 사용자 정보는 environ["cicd_console.user"]로 하위 앱에 전달합니다.
    """

    def __init__(self, app, provider, audit_service: Optional[AuditService] = None,
                 unmatched_route_policy: str = "allow", session_cookie: str = "session_id",
                 trusted_proxies: Iterable[str] = ()):
        """
        Args:
            app: 권한 확인을 통과한 요청을 처리할 WSGI 앱.
            provider: 요청마다 서비스를 만들어 주는 ServiceProvider.
            audit_service: 접근 기록을 남길 감사 로그 서비스.
            unmatched_route_policy: 분류되지 않은 경로의 처리 방식 ('allow' 또는 'deny').
            session_cookie: 세션 토큰을 담는 쿠키 이름.
            trusted_proxies: X-Forwarded-For를 신뢰할 프록시 주소 목록.
        """
        self.app = app
        self.provider = provider
        self.audit_service = audit_service
        self.unmatched_route_policy = unmatched_route_policy
        self.session_cookie = session_cookie
        self.trusted_proxies = tuple(trusted_proxies)

    def __call__(self, environ, start_response):
        path = environ.get("PATH_INFO", "") or "/"
        if is_public_path(path):
            return self.app(environ, start_response)

        method = environ.get("REQUEST_METHOD", "GET")
        try:
            with self.provider.scope() as services:
                user = services['identity'].get_principal(get_session_token(environ, self.session_cookie))
                if user is None:
                    return self._unauthenticated(environ, start_response)
                allowed = self.is_allowed(services['authorization'], user, method, path)
                principal = {"id": user.id, "username": user.username, "role": user.role}
        except Exception:
            logger.exception("Authorization failed for %s %s", method, path)
            return self._forbidden(environ, start_response)

        if not allowed:
            logger.info("Denied %s %s for user %s", method, path, principal["id"])
            return self._forbidden(environ, start_response)

        try:
            self._log_access(environ, principal, method, path)
        except Exception:
            logger.exception("Failed to submit access audit event for %s %s", method, path)
        environ[ENVIRON_USER_KEY] = principal
        return self.app(environ, start_response)

    def is_allowed(self, authorization: AuthorizationService, user: models.User, method: str, path: str) -> bool:
        if user.is_admin:
            return True

        family, argument, permission_type = classify(method, path)
        if family == "admin":
            return False
        if family == "system":
            feature = SYSTEM_PATH_FEATURES.get(argument, "system_config")
            return authorization.check_system_access(user, feature, permission_type)
        if family == "project":
            return authorization.check_project_access_by_id(user, int(argument), permission_type)
        if family == "resource":
            return authorization.check_resource_access_by_id(user, int(argument), permission_type)
        return self.unmatched_route_policy == "allow"

    def _unauthenticated(self, environ, start_response):
        if wants_json(environ):
            return json_response(start_response, 401, {
                "success": False,
                "message": "Login required.",
                "redirect": "/login",
            })
        return redirect_response(start_response, "/login?redirect=" + quote(get_request_path(environ), safe=""))

    def _forbidden(self, environ, start_response):
        if wants_json(environ):
            return json_response(start_response, 403, {"success": False, "message": "Permission denied."})
        return html_response(start_response, 403, "<h1>403 Forbidden</h1>")

    def _log_access(self, environ, principal, method: str, path: str):
        if self.audit_service is None:
            return
        self.audit_service.submit(
            log_type="user",
            level="info",
            message=f"Accessed: {method} {path}",
            user_id=principal["id"],
            ip_address=get_client_ip(environ, self.trusted_proxies),
            source="user_action",
            details={
                "method": method,
                "path": path,
                "user_agent": environ.get("HTTP_USER_AGENT"),
                "timestamp": datetime.now().isoformat(),
            },
        )
