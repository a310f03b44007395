import json
import logging
from datetime import datetime, timedelta, timezone
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from cicd_console.database import models
from cicd_console.repositories.interfaces import IAuditLogRepository
from cicd_console.repositories.sqlalchemy import SqlalchemyAuditLogRepository

logger = logging.getLogger(__name__)


class AuditService:
    """
    보안 관련 이벤트를 audit_logs 테이블에 추가 전용으로 기록합니다.

    기록 실패는 호출자에게 전파되지 않으며, 모듈 로거로만 보고됩니다.
    요청 처리 경로에서는 submit()을 사용해 별도 스레드에서 기록합니다.
    """

    def __init__(
        self,
        session_factory: Callable,
        repository_factory: Callable[[Any], IAuditLogRepository] = SqlalchemyAuditLogRepository,
        max_workers: int = 2,
    ):
        """
        Args:
            session_factory: 기록 한 건마다 새 DB 세션을 만들 팩토리. (예: SessionLocal)
            repository_factory: 세션을 받아 감사 로그 리포지토리를 만드는 팩토리.
            max_workers: 비동기 기록에 사용할 스레드 수.
        """
        self.session_factory = session_factory
        self.repository_factory = repository_factory
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="audit")

    def log(
        self,
        log_type: str,
        level: str,
        message: str,
        user_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        감사 로그 한 건을 동기적으로 기록합니다.

        Returns:
            기록에 성공하면 True, 실패하면 False. 예외는 발생시키지 않습니다.
        """
        if log_type not in models.LOG_TYPES or level not in models.LOG_LEVELS:
            logger.error("Rejected audit event with type=%s level=%s: %s", log_type, level, message)
            return False

        try:
            db = self.session_factory()
            try:
                entry = models.AuditLog(
                    log_type=log_type,
                    level=level,
                    message=message,
                    source=source,
                    user_id=user_id,
                    ip_address=ip_address,
                    details=json.dumps(details, default=str, ensure_ascii=False) if details else None,
                )
                self.repository_factory(db).add(entry)
            finally:
                db.close()
            return True
        except Exception as e:
            logger.error("Failed to write audit log: %s | original: [%s] %s", e, level.upper(), message)
            return False

    def submit(self, **event) -> None:
        """log()를 백그라운드 스레드에서 실행합니다. 결과를 기다리지 않습니다."""
        try:
            self.executor.submit(self.log, **event)
        except RuntimeError:
            # 종료 중인 실행기
            logger.warning("Audit executor unavailable, dropping event: %s", event.get("message"))

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)

    # --- 이벤트 종류별 헬퍼 ---

    def audit_log(self, message: str, user_id: Optional[int], action: str,
                  resource_type: Optional[str] = None, resource_id: Any = None,
                  ip_address: Optional[str] = None) -> bool:
        details = {"action": action, "resource_type": resource_type, "resource_id": resource_id}
        return self.log("audit", "info", message, user_id=user_id, ip_address=ip_address,
                        source="audit", details=details)

    def system_log(self, level: str, message: str, details: Optional[Dict[str, Any]] = None) -> bool:
        return self.log("system", level, message, source="system", details=details)

    # --- 유지보수 ---

    def clean_old_logs(self, days: int = 30) -> int:
        """
        days일보다 오래된 로그를 삭제합니다. (created_at은 UTC 기준)
        log()와 달리 실패 시 예외를 그대로 발생시킵니다.

        Returns:
            삭제된 로그 수.
        """
        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days)
        db = self.session_factory()
        try:
            deleted_count = self.repository_factory(db).delete_older_than(cutoff)
        finally:
            db.close()

        logger.info("Deleted %d audit logs older than %d days", deleted_count, days)
        self.system_log("info", f"Cleaned up {deleted_count} logs older than {days} days")
        return deleted_count
