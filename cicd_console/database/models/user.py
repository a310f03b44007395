from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship
from ..database import Base

class User(Base):
    """
    콘솔에 로그인하여 프로젝트, 머신, 스크립트를 관리하는 사용자를 나타냅니다.
    role이 'admin'인 사용자는 모든 권한 검사를 통과합니다.
    """
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")
    active = Column(Boolean, nullable=False, default=True)
    email = Column(String)
    last_login = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    owned_projects = relationship("Project", back_populates="owner")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
