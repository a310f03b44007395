# cicd_console/app.py
from wsgiref.simple_server import make_server
from urllib.parse import parse_qs
import logging
import json
import sys
import re

from cicd_console.config import Settings, configure_logging, get_settings
from cicd_console.dependencies import ServiceProvider
from cicd_console.middleware.brute_force_guard import BruteForceGuard, LoginAttemptStore
from cicd_console.middleware.request_gate import ENVIRON_USER_KEY, RequestGate
from cicd_console.middleware.request_logger import RequestLogger
from cicd_console.services.exceptions import *
from cicd_console.utils.wsgi import JSON_CONTENT_TYPE, get_client_ip, get_request_data, get_session_token

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_id"

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def get_query_params(environ):
    return {key: values[0] for key, values in parse_qs(environ.get("QUERY_STRING", "")).items()}

def current_user_id(environ):
    principal = environ.get(ENVIRON_USER_KEY)
    if not principal:
        raise TokenInvalidError("Login required.")
    return principal['id']

def require_admin(environ):
    principal = environ.get(ENVIRON_USER_KEY)
    if not principal:
        raise TokenInvalidError("Login required.")
    if principal['role'] != "admin":
        raise ForbiddenError("Administrator privileges required.")
    return principal['id']

def require_fields(data, *fields):
    missing = [field for field in fields if data.get(field) in (None, "")]
    if missing:
        raise InvalidArgumentError(f"Missing required field(s): {', '.join(missing)}")
    return [data[field] for field in fields]

def parse_id(value, name):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"'{name}' must be an integer.")

def resource_to_dict(resource):
    return {"id": resource.id, "name": resource.name, "ip": resource.ip}

def parse_ids(values, name):
    if not isinstance(values, list):
        raise InvalidArgumentError(f"'{name}' must be a list of integers.")
    return [parse_id(value, name) for value in values]

def project_to_dict(project):
    return {
        "id": project.id,
        "name": project.name,
        "user_id": project.user_id,
        "workspace_id": project.workspace_id,
    }

def handle_exception(e):
    error_map = {
        TokenInvalidError: "401 Unauthorized",
        AuthenticationError: "401 Unauthorized",
        ForbiddenError: "403 Forbidden",
        UserNotFoundError: "404 Not Found",
        ProjectNotFoundError: "404 Not Found",
        InvalidArgumentError: "400 Bad Request",
        ValueError: "400 Bad Request",
    }
    status = error_map.get(type(e), "500 Internal Server Error")
    if status.startswith("500"):
        logger.exception("Unhandled error while processing request")
        return status, json.dumps({"success": False, "error": "Internal Server Error"})
    return status, json.dumps({"success": False, "error": str(e)})

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

def make_application(provider: ServiceProvider):
    """요청마다 provider로 서비스를 만들어 핸들러에 전달하는 WSGI 앱을 생성합니다."""

    def application(environ, start_response):
        extra_headers = []
        try:
            with provider.scope() as services:
                # 생성된 서비스 객체들을 environ을 통해 핸들러에 전달
                environ['services'] = services

                path = environ.get("PATH_INFO", "")
                method = environ.get("REQUEST_METHOD", "")

                handler, path_args = None, []
                for route_method, pattern, route_handler in ROUTES:
                    if method == route_method and (match := re.match(pattern, path)):
                        handler, path_args = route_handler, match.groups()
                        break

                if handler:
                    status, response_body, *rest = handler(environ, *path_args)
                    if rest:
                        extra_headers = rest[0]
                else:
                    status, response_body = '404 Not Found', json.dumps({'success': False, 'error': 'Not Found'})

        except Exception as e:
            status, response_body = handle_exception(e)

        body = response_body.encode("utf-8")
        start_response(status, [("Content-Type", JSON_CONTENT_TYPE), ("Content-Length", str(len(body)))] + extra_headers)
        return [body]

    return application

# --------------------------------------------------------------------------
## 핸들러 함수
# --------------------------------------------------------------------------

def health_handler(environ, *args):
    return '200 OK', json.dumps({"status": "ok"})

def version_handler(environ, *args):
    settings = environ['services']['settings']
    return '200 OK', json.dumps({"name": settings.app_name, "version": settings.app_version})

def login_handler(environ, *args):
    data = get_request_data(environ)
    audit = environ['services']['audit']
    ip = get_client_ip(environ, environ['services']['settings'].trusted_proxies)
    try:
        session = environ['services']['identity'].authenticate(data.get('username'), data.get('password'))
    except AuthenticationError as e:
        audit.submit(log_type="security", level="warn", message=f"Failed login for '{data.get('username')}'",
                     ip_address=ip, source="security", details={"reason": str(e)})
        raise

    audit.submit(log_type="user", level="info", message="User logged in", user_id=session['user_id'],
                 ip_address=ip, source="user_action")
    cookie = f"{SESSION_COOKIE}={session['token']}; Path=/; HttpOnly; SameSite=Lax"
    return '200 OK', json.dumps(dict(session, success=True)), [("Set-Cookie", cookie)]

def logout_handler(environ, *args):
    token = get_session_token(environ, SESSION_COOKIE)
    logged_out = environ['services']['identity'].logout(token)
    cookie = f"{SESSION_COOKIE}=; Path=/; Max-Age=0"
    return '200 OK', json.dumps({"success": True, "logged_out": logged_out}), [("Set-Cookie", cookie)]

def list_projects_handler(environ, *args):
    user = environ['services']['identity'].get_user(current_user_id(environ))
    projects = environ['services']['authorization'].get_user_accessible_projects(user)
    return '200 OK', json.dumps({"projects": [project_to_dict(p) for p in projects]})

def get_project_handler(environ, project_id):
    project = environ['services']['authorization'].find_project(int(project_id))
    return '200 OK', json.dumps(project_to_dict(project))

def list_resources_handler(environ, *args):
    user = environ['services']['identity'].get_user(current_user_id(environ))
    resources = environ['services']['authorization'].get_user_accessible_resources(user)
    return '200 OK', json.dumps({"resources": [resource_to_dict(r) for r in resources]})

def list_permissions_handler(environ, *args):
    require_admin(environ)
    params = get_query_params(environ)
    authorization = environ['services']['authorization']
    if 'user_id' in params:
        permissions = authorization.list_user_permissions(parse_id(params['user_id'], 'user_id'))
    elif 'resource_type' in params:
        permissions = authorization.list_resource_permissions(params['resource_type'], params.get('resource_id'))
    else:
        raise InvalidArgumentError("Either 'user_id' or 'resource_type' query parameter is required.")
    return '200 OK', json.dumps({"permissions": permissions})

def permission_matrix_handler(environ, *args):
    require_admin(environ)
    resource_type = get_query_params(environ).get('resource_type')
    matrix = environ['services']['authorization'].get_permission_matrix(resource_type)
    return '200 OK', json.dumps({"matrix": matrix})

def grant_permission_handler(environ, *args):
    actor_id = require_admin(environ)
    data = get_request_data(environ)
    user_id, resource_type, permission_type = require_fields(data, 'user_id', 'resource_type', 'permission_type')
    permission = environ['services']['authorization'].grant(
        parse_id(user_id, 'user_id'), resource_type, data.get('resource_id'), permission_type,
        granted_by=actor_id,
    )
    return '201 Created', json.dumps({"success": True, "permission": permission.to_dict()})

def revoke_permission_handler(environ, *args):
    actor_id = require_admin(environ)
    data = get_request_data(environ)
    user_id, resource_type = require_fields(data, 'user_id', 'resource_type')
    revoked = environ['services']['authorization'].revoke(
        parse_id(user_id, 'user_id'), resource_type, data.get('resource_id'),
        revoked_by=actor_id,
    )
    return '200 OK', json.dumps({"success": True, "revoked": revoked})

def copy_permissions_handler(environ, *args):
    actor_id = require_admin(environ)
    data = get_request_data(environ)
    from_user_id, to_user_id = require_fields(data, 'from_user_id', 'to_user_id')
    copied = environ['services']['authorization'].copy_permissions(
        parse_id(from_user_id, 'from_user_id'), parse_id(to_user_id, 'to_user_id'),
        data.get('resource_type'), copied_by=actor_id,
    )
    return '200 OK', json.dumps({"success": True, "copied": copied})

def bulk_grant_handler(environ, *args):
    actor_id = require_admin(environ)
    data = get_request_data(environ)
    user_ids, resource_type, permission_type = require_fields(data, 'user_ids', 'resource_type', 'permission_type')
    granted = environ['services']['authorization'].bulk_grant(
        parse_ids(user_ids, 'user_ids'), resource_type, data.get('resource_id'), permission_type,
        granted_by=actor_id,
    )
    return '200 OK', json.dumps({"success": True, "granted": granted})

def bulk_revoke_handler(environ, *args):
    actor_id = require_admin(environ)
    data = get_request_data(environ)
    user_ids, resource_type = require_fields(data, 'user_ids', 'resource_type')
    revoked = environ['services']['authorization'].bulk_revoke(
        parse_ids(user_ids, 'user_ids'), resource_type, data.get('resource_id'),
        revoked_by=actor_id,
    )
    return '200 OK', json.dumps({"success": True, "revoked": revoked})

def cleanup_permissions_handler(environ, *args):
    require_admin(environ)
    counts = environ['services']['authorization'].cleanup_orphaned_permissions()
    return '200 OK', json.dumps(dict(counts, success=True))


ROUTES = [
    ('POST', r'^/login$', login_handler),
    ('POST', r'^/logout$', logout_handler),
    ('GET', r'^/api/health$', health_handler),
    ('GET', r'^/api/version$', version_handler),
    ('GET', r'^/projects$', list_projects_handler),
    ('GET', r'^/projects/([0-9]+)$', get_project_handler),
    ('GET', r'^/resources$', list_resources_handler),
    ('GET', r'^/admin/permissions$', list_permissions_handler),
    ('GET', r'^/admin/permissions/matrix$', permission_matrix_handler),
    ('POST', r'^/admin/permissions$', grant_permission_handler),
    ('DELETE', r'^/admin/permissions$', revoke_permission_handler),
    ('POST', r'^/admin/permissions/copy$', copy_permissions_handler),
    ('POST', r'^/admin/permissions/bulk-grant$', bulk_grant_handler),
    ('POST', r'^/admin/permissions/bulk-revoke$', bulk_revoke_handler),
    ('POST', r'^/admin/permissions/cleanup$', cleanup_permissions_handler),
]

# --------------------------------------------------------------------------
## 앱 조립
# --------------------------------------------------------------------------

def create_app(settings: Settings = None, session_factory=None):
    """
    라우팅 앱에 RequestGate, BruteForceGuard, RequestLogger를 씌운 최종 WSGI 앱을 만듭니다.
    요청 흐름: RequestLogger -> BruteForceGuard -> RequestGate -> application
    """
    settings = settings or get_settings()
    if session_factory is None:
        from cicd_console.database.database import SessionLocal
        session_factory = SessionLocal

    provider = ServiceProvider(settings, session_factory)
    gate = RequestGate(
        make_application(provider), provider,
        audit_service=provider.audit_service,
        unmatched_route_policy=settings.unmatched_route_policy,
        session_cookie=SESSION_COOKIE,
        trusted_proxies=settings.trusted_proxies,
    )
    store = LoginAttemptStore(
        max_failures=settings.login_max_failures,
        window_seconds=settings.login_window_seconds,
        block_seconds=settings.login_block_seconds,
    )
    guard = BruteForceGuard(gate, store, audit_service=provider.audit_service,
                            trusted_proxies=settings.trusted_proxies)
    return RequestLogger(guard, audit_service=provider.audit_service, trusted_proxies=settings.trusted_proxies)

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    try:
        with make_server(settings.host, settings.port, create_app(settings)) as httpd:
            logger.info("Serving %s on port %d...", settings.app_name, settings.port)
            httpd.serve_forever()
    except Exception as e:
        print(f"Error starting server: {e}", file=sys.stderr)
