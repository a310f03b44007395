from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from cicd_console.config import get_settings


def build_engine(database_url: str):
    """
    데이터베이스 URL로 SQLAlchemy 엔진을 생성합니다.
    connect_args는 SQLite에서만 필요합니다. (요청 스레드 간 연결 공유 허용)
    """
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


# 설정 파일(.env / 환경 변수)의 연결 문자열로 기본 엔진을 생성합니다.
engine = build_engine(get_settings().database_url)

# autocommit=False, autoflush=False로 설정하여, 명시적으로 commit을 호출해야 DB에 반영됩니다.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 모든 모델 클래스가 상속받을 Base 클래스
Base = declarative_base()
