import hashlib
import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from cicd_console.database import models
from cicd_console.repositories.interfaces import IUserRepository
from cicd_console.services.exceptions import (
    AuthenticationError, TokenInvalidError, UserNotFoundError
)

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


class SessionStore:
    """
    세션 토큰 -> 세션 데이터 매핑을 보관하는 프로세스 메모리 저장소입니다.
    프로세스 시작 시 한 번 생성하여 IdentityService에 주입합니다.
    """

    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def put(self, token: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._sessions[token] = data

    def get(self, token: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._sessions.get(token)

    def delete(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None


class IdentityService:
    """로그인, 세션 토큰 발급/검증, 토큰으로부터 요청 주체(principal) 확인을 담당합니다."""

    def __init__(self, user_repo: IUserRepository, session_store: SessionStore, ttl_minutes: int = 60):
        """
        IdentityService를 초기화합니다.

        Args:
            user_repo: 사용자 데이터에 접근하기 위한 리포지토리.
            session_store: 발급된 세션 토큰을 보관하는 저장소.
            ttl_minutes: 세션 토큰의 유효 시간(분).
        """
        self.user_repo = user_repo
        self.session_store = session_store
        self.ttl = timedelta(minutes=ttl_minutes)

    def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        """
        자격증명을 검증하고, 성공 시 세션 토큰을 발급합니다.

        Raises:
            AuthenticationError: 사용자가 없거나, 비밀번호가 틀리거나, 비활성 사용자일 때.
        """
        if not username or not password:
            raise AuthenticationError("Username and password are required.")

        user = self.user_repo.find_by_username(username)
        if not user:
            raise AuthenticationError("Invalid username or password.")

        if user.password_hash != hash_password(password):
            raise AuthenticationError("Invalid username or password.")

        if not user.active:
            raise AuthenticationError("Account is disabled.")

        self.user_repo.update_last_login(user)

        token = str(uuid.uuid4())
        expires_at = datetime.now() + self.ttl
        self.session_store.put(token, {
            'user_id': user.id,
            'expires_at': expires_at,
        })
        logger.info("User %s logged in", user.id)
        return {"token": token, "expires_at": expires_at.isoformat(), "user_id": user.id}

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        세션 토큰의 유효성을 검증하고, 유효하면 세션 데이터를 반환합니다.

        Raises:
            TokenInvalidError: 토큰을 찾을 수 없거나 만료되었을 때.
        """
        token_data = self.session_store.get(token) if token else None
        if not token_data:
            raise TokenInvalidError("Token not found or invalid.")

        if datetime.now() > token_data['expires_at']:
            self.session_store.delete(token)
            raise TokenInvalidError("Token has expired.")

        return token_data

    def get_principal(self, token: Optional[str]) -> Optional[models.User]:
        """
        토큰에 해당하는 활성 사용자를 반환합니다.
        토큰이 없거나 유효하지 않거나, 사용자가 삭제/비활성화된 경우 None을 반환합니다.
        """
        if not token:
            return None
        try:
            token_data = self.validate_token(token)
        except TokenInvalidError:
            return None

        user = self.user_repo.find_by_id(token_data['user_id'])
        if not user or not user.active:
            return None
        return user

    def get_user(self, user_id: int) -> models.User:
        """
        ID로 사용자를 조회합니다.

        Raises:
            UserNotFoundError: 해당 ID의 사용자를 찾을 수 없을 때.
        """
        user = self.user_repo.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(f"User with id '{user_id}' not found.")
        return user

    def logout(self, token: Optional[str]) -> bool:
        """세션 토큰을 폐기합니다. 폐기할 토큰이 있었으면 True."""
        if not token:
            return False
        return self.session_store.delete(token)
