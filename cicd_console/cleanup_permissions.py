import json
import logging
import sys

from cicd_console.config import configure_logging, get_settings
from cicd_console.database.database import SessionLocal
from cicd_console.dependencies import ServiceProvider

logger = logging.getLogger(__name__)


def main(session_factory=None) -> int:
    """
    삭제된 사용자/리소스를 가리키는 권한을 정리합니다.
    cron 등으로 주기적으로 실행하는 유지보수 스크립트입니다.
    """
    settings = get_settings()
    provider = ServiceProvider(settings, session_factory or SessionLocal)
    try:
        with provider.scope() as services:
            counts = services['authorization'].cleanup_orphaned_permissions()
        print(json.dumps(counts))
        return 0
    except Exception as e:
        logger.exception("Orphaned permission cleanup failed")
        print(f"오류 발생: {e}", file=sys.stderr)
        return 1
    finally:
        provider.audit_service.shutdown()


if __name__ == "__main__":
    configure_logging(get_settings().log_level, get_settings().log_file)
    sys.exit(main())
