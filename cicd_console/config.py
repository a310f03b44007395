import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    CI/CD 콘솔의 실행 설정입니다.
    환경 변수(CICD_ 접두사) 또는 .env 파일에서 값을 읽습니다.
    """
    app_name: str = "cicd-console"
    app_version: str = "1.0.0"
    host: str = ""
    port: int = 8000

    # 데이터베이스
    database_url: str = "sqlite:///cicd_console.db"

    # 세션
    session_ttl_minutes: int = 60

    # 로그인 실패 차단 정책
    login_max_failures: int = 5
    login_window_seconds: int = 300
    login_block_seconds: int = 900

    # X-Forwarded-For를 신뢰할 리버스 프록시 주소 (예: CICD_TRUSTED_PROXIES='["127.0.0.1"]')
    trusted_proxies: List[str] = []

    # 분류되지 않은 보호 경로의 기본 처리 (allow | deny)
    unmatched_route_policy: str = "allow"

    # 감사 로그 비동기 기록용 워커 수
    audit_workers: int = 2
    # 이 기간(일)보다 오래된 감사 로그는 정리 작업이 삭제합니다
    log_retention_days: int = 30

    log_level: str = "INFO"
    log_file: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CICD_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("unmatched_route_policy")
    @classmethod
    def validate_route_policy(cls, v: str) -> str:
        v = v.lower()
        if v not in ("allow", "deny"):
            raise ValueError("unmatched_route_policy must be 'allow' or 'deny'")
        return v

    @field_validator("login_max_failures", "login_window_seconds", "login_block_seconds", "log_retention_days")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v


@lru_cache()
def get_settings() -> Settings:
    """캐시된 설정 객체를 반환합니다."""
    return Settings()


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    """프로세스 시작 시 한 번 호출하여 루트 로거를 설정합니다."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
