from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint, func
from ..database import Base

RESOURCE_TYPES = ("project", "workspace", "resource", "script", "system", "node")
PERMISSION_TYPES = ("read", "write", "admin")

# 리소스 전체에 대한 권한(resource_id 없음)을 저장할 때 사용하는 값.
# NULL은 UNIQUE 제약에서 서로 다른 값으로 취급되므로 빈 문자열로 저장합니다.
TYPE_WIDE = ""

class Permission(Base):
    """
    사용자 한 명이 특정 리소스에 대해 가지는 권한 한 건을 나타냅니다.
    (user_id, resource_type, resource_id) 조합당 최대 한 행만 존재합니다.
    권한 종류(read/write/admin)는 서로 포함 관계가 없습니다.
    """
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "resource_type", "resource_id", name="uq_permission_user_resource"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # 사용자 삭제 후 남은 권한은 정리 작업이 제거하므로 FK를 걸지 않습니다.
    user_id = Column(Integer, nullable=False, index=True)
    resource_type = Column(String, nullable=False)
    resource_id = Column(String, nullable=False, default=TYPE_WIDE)
    permission_type = Column(String, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def scoped_id(self):
        """저장된 resource_id를 외부 표현(None = 전체 권한)으로 돌려줍니다."""
        return None if self.resource_id == TYPE_WIDE else self.resource_id

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "resource_type": self.resource_type,
            "resource_id": self.scoped_id,
            "permission_type": self.permission_type,
        }
