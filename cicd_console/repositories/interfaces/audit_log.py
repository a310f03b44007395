from abc import ABC, abstractmethod
from datetime import datetime
from cicd_console.database import models

class IAuditLogRepository(ABC):
    @abstractmethod
    def add(self, entry: models.AuditLog) -> models.AuditLog:
        """감사 로그 한 건을 추가합니다. 기존 로그는 수정하지 않습니다."""
        pass

    @abstractmethod
    def delete_older_than(self, cutoff: datetime) -> int:
        """cutoff 이전에 생성된 로그를 삭제하고 삭제 건수를 반환합니다."""
        pass
