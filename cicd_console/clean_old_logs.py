import logging
import sys

from cicd_console.config import configure_logging, get_settings
from cicd_console.database.database import SessionLocal
from cicd_console.services.audit_service import AuditService

logger = logging.getLogger(__name__)


def main(session_factory=None, days: int = None) -> int:
    """
    보존 기간(log_retention_days)이 지난 감사 로그를 삭제합니다.
    cleanup_permissions와 함께 주기적으로 실행하는 유지보수 스크립트입니다.
    """
    settings = get_settings()
    audit_service = AuditService(session_factory or SessionLocal, max_workers=1)
    try:
        deleted_count = audit_service.clean_old_logs(days or settings.log_retention_days)
        print(f"Deleted {deleted_count} audit logs.")
        return 0
    except Exception as e:
        logger.exception("Audit log cleanup failed")
        print(f"오류 발생: {e}", file=sys.stderr)
        return 1
    finally:
        audit_service.shutdown()


if __name__ == "__main__":
    configure_logging(get_settings().log_level, get_settings().log_file)
    sys.exit(main())
