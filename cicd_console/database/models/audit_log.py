from sqlalchemy import Column, DateTime, Integer, String, Text, func
from ..database import Base

LOG_TYPES = ("system", "user", "security", "audit")
LOG_LEVELS = ("debug", "info", "warn", "error")

class AuditLog(Base):
    """
    권한 부여/회수, 페이지 접근, 로그인 차단 등 보안 관련 이벤트를 추가 전용으로 기록합니다.
    details에는 이벤트별 부가 정보가 JSON 문자열로 저장됩니다.
    """
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True, index=True)
    log_type = Column(String, nullable=False, index=True)
    level = Column(String, nullable=False)
    message = Column(String, nullable=False)
    source = Column(String)
    user_id = Column(Integer)
    ip_address = Column(String)
    details = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
