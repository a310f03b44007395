from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship
from ..database import Base

class Workspace(Base):
    """
    여러 프로젝트를 묶는 상위 컨테이너입니다.
    워크스페이스에 대한 권한은 그 안의 모든 프로젝트 접근에 적용됩니다.
    """
    __tablename__ = "workspaces"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String)
    owner_id = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())

    projects = relationship("Project", back_populates="workspace")
