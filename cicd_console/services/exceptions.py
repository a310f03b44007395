# cicd_console/services/exceptions.py

# --- Validation Exceptions ---
class InvalidArgumentError(ValueError):
    """알 수 없는 리소스 유형이나 권한 유형이 전달되었을 때"""
    pass

# --- Not Found Exceptions ---
class UserNotFoundError(Exception):
    """사용자를 찾을 수 없을 때"""
    pass

class ProjectNotFoundError(Exception):
    """프로젝트를 찾을 수 없을 때"""
    pass

# --- Auth Exceptions ---
class TokenInvalidError(Exception):
    """세션 토큰이 유효하지 않거나 없을 때"""
    pass

class AuthenticationError(Exception):
    """사용자 자격 증명 실패 시"""
    pass

class ForbiddenError(Exception):
    """인증은 되었으나 요청한 작업에 대한 권한이 없을 때"""
    pass
