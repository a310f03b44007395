from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship
from ..database import Base

class Project(Base):
    """
    빌드와 배포의 단위가 되는 프로젝트입니다.
    소유자(user_id)와 선택적인 소속 워크스페이스(workspace_id)를 가집니다.
    """
    __tablename__ = "projects"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    owner = relationship("User", back_populates="owned_projects")
    workspace = relationship("Workspace", back_populates="projects")
