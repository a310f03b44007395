import json
from http import HTTPStatus
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, Iterable, List, Optional, Tuple

Headers = List[Tuple[str, str]]

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


def status_line(code: int) -> str:
    """302 -> '302 Found' 처럼 WSGI 상태 문자열을 만듭니다."""
    return f"{code} {HTTPStatus(code).phrase}"


def status_code(status: str) -> int:
    return int(status.split(" ", 1)[0])


def get_request_data(environ) -> Dict[str, Any]:
    """요청 본문을 JSON 객체로 읽습니다. 본문이 없으면 빈 dict."""
    try:
        content_length = int(environ.get("CONTENT_LENGTH") or 0)
        data = json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
    except (ValueError, json.JSONDecodeError):
        raise ValueError("Invalid or missing JSON body.")
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object.")
    return data


def get_client_ip(environ, trusted_proxies: Iterable[str] = ()) -> str:
    """
    요청을 보낸 클라이언트의 IP를 반환합니다.

    X-Forwarded-For / X-Real-IP는 REMOTE_ADDR가 신뢰하는 프록시일 때만 사용합니다.
    X-Forwarded-For는 오른쪽부터 읽어, 신뢰하는 프록시가 아닌 첫 주소를 클라이언트로 봅니다.
    """
    trusted = set(trusted_proxies)
    remote_addr = environ.get("REMOTE_ADDR", "")
    if remote_addr not in trusted:
        return remote_addr

    forwarded = [ip.strip() for ip in environ.get("HTTP_X_FORWARDED_FOR", "").split(",") if ip.strip()]
    for ip in reversed(forwarded):
        if ip not in trusted:
            return ip
    if forwarded:
        return forwarded[0]
    return environ.get("HTTP_X_REAL_IP") or remote_addr


def get_request_path(environ) -> str:
    """경로와 쿼리 문자열을 합친 원래 요청 위치를 반환합니다."""
    path = environ.get("PATH_INFO", "") or "/"
    query = environ.get("QUERY_STRING", "")
    return f"{path}?{query}" if query else path


def wants_json(environ) -> bool:
    """
    API 클라이언트인지 판별합니다. 응답 형식 선택에만 사용하며 권한 판정에는 쓰지 않습니다.
    """
    if environ.get("HTTP_X_REQUESTED_WITH", "").lower() == "xmlhttprequest":
        return True
    if "application/json" in environ.get("CONTENT_TYPE", ""):
        return True
    accept = environ.get("HTTP_ACCEPT", "")
    return "application/json" in accept and "text/html" not in accept


def get_session_token(environ, cookie_name: str = "session_id") -> Optional[str]:
    """쿠키의 세션 ID를 우선 사용하고, 없으면 X-Auth-Token 헤더를 사용합니다."""
    raw_cookie = environ.get("HTTP_COOKIE")
    if raw_cookie:
        try:
            cookie = SimpleCookie(raw_cookie)
        except CookieError:
            cookie = None
        if cookie is not None and cookie_name in cookie:
            return cookie[cookie_name].value
    return environ.get("HTTP_X_AUTH_TOKEN")


def json_response(start_response, code: int, payload: Dict[str, Any], headers: Optional[Headers] = None):
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    start_response(status_line(code), [
        ("Content-Type", JSON_CONTENT_TYPE),
        ("Content-Length", str(len(body))),
    ] + (headers or []))
    return [body]


def html_response(start_response, code: int, html: str):
    body = html.encode("utf-8")
    start_response(status_line(code), [
        ("Content-Type", HTML_CONTENT_TYPE),
        ("Content-Length", str(len(body))),
    ])
    return [body]


def redirect_response(start_response, location: str):
    start_response(status_line(302), [("Location", location), ("Content-Length", "0")])
    return [b""]


def materialize(result):
    """응답 iterable을 끝까지 읽어 리스트로 만듭니다. start_response를 늦게 호출하는 앱에 사용합니다."""
    try:
        return list(result)
    finally:
        if hasattr(result, "close"):
            result.close()
