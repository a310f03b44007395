from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from cicd_console.database import models
from cicd_console.repositories.interfaces import IAuditLogRepository

class SqlalchemyAuditLogRepository(IAuditLogRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def add(self, entry: models.AuditLog) -> models.AuditLog:
        self.db.add(entry)
        self.db.commit()
        return entry

    def delete_older_than(self, cutoff: datetime) -> int:
        try:
            deleted = self.db.query(models.AuditLog).filter(
                models.AuditLog.created_at < cutoff
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return deleted
