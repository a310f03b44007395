# tests/conftest.py
import pytest
from sqlalchemy.orm import sessionmaker

from cicd_console.database import models
from cicd_console.database.database import Base, build_engine


@pytest.fixture
def engine(tmp_path):
    """테스트마다 새 SQLite 파일 DB를 만들고 테이블을 생성합니다."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db_session):
    """DB에 사용자를 추가하는 헬퍼를 반환합니다."""
    def _make_user(username, role="user", password_hash="x", active=True):
        user = models.User(username=username, password_hash=password_hash, role=role, active=active)
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user
