import logging

from sqlalchemy.exc import SQLAlchemyError

from .database import engine, SessionLocal, Base
from .models import *
from cicd_console.services.identity_service import hash_password

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"
DEFAULT_WORKSPACE_NAME = "default"


def initialize_db(bind=None, session_factory=None):
    """
    DB와 테이블을 생성하고, 기본 관리자와 기본 워크스페이스를 삽입합니다.
    이미 데이터가 있으면 테이블 생성만 수행합니다.

    Args:
        bind: 테이블을 생성할 엔진. 생략하면 설정 파일의 기본 엔진을 사용합니다.
        session_factory: 기본 데이터를 삽입할 세션 팩토리. 생략하면 SessionLocal을 사용합니다.
    """
    bind = bind or engine
    session_factory = session_factory or SessionLocal

    logger.info("Creating tables on %s", bind.url)
    Base.metadata.create_all(bind=bind)

    db = session_factory()
    try:
        admin_user = db.query(User).filter(User.username == DEFAULT_ADMIN_USERNAME).first()
        if not admin_user:
            admin_user = User(
                username=DEFAULT_ADMIN_USERNAME,
                password_hash=hash_password(DEFAULT_ADMIN_PASSWORD),
                role="admin",
                email="admin@example.com",
            )
            db.add(admin_user)
            # 워크스페이스 소유자로 지정하기 위해 id를 먼저 할당받습니다.
            db.commit()
            logger.info("Default admin user created (username=%s)", DEFAULT_ADMIN_USERNAME)

        if not db.query(Workspace).filter(Workspace.name == DEFAULT_WORKSPACE_NAME).first():
            db.add(Workspace(
                name=DEFAULT_WORKSPACE_NAME,
                description="Default workspace",
                owner_id=admin_user.id,
            ))
            db.commit()
            logger.info("Default workspace created")

    except SQLAlchemyError:
        logger.exception("Database initialization failed")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == '__main__':
    from cicd_console.config import configure_logging, get_settings

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    initialize_db()
