from sqlalchemy import Column, DateTime, Integer, String, func
from ..database import Base

class Resource(Base):
    """
    빌드 산출물을 배포하거나 스크립트를 실행할 대상 머신(서버)입니다.
    SSH 접속 정보 등은 외부 모듈이 관리하며, 여기서는 권한 검사에 필요한 식별 정보만 가집니다.
    """
    __tablename__ = "resources"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    ip = Column(String, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
