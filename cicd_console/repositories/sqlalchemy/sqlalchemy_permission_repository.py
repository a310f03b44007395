from typing import Iterable, List, Optional, Tuple
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from cicd_console.database import models
from cicd_console.repositories.interfaces import IPermissionRepository, ResourceId

_UNIQUE_KEY = ["user_id", "resource_type", "resource_id"]
_DIALECT_INSERTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}


def _key(resource_id: ResourceId) -> str:
    """외부 resource_id를 저장 형식(문자열, 유형 전체 권한은 빈 문자열)으로 변환합니다."""
    return models.TYPE_WIDE if resource_id is None else str(resource_id)


class SqlalchemyPermissionRepository(IPermissionRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def _dialect_insert(self):
        return _DIALECT_INSERTS.get(self.db.get_bind().dialect.name)

    def _filter_key(self, user_id: int, resource_type: str, resource_id: ResourceId):
        return self.db.query(models.Permission).filter(
            models.Permission.user_id == user_id,
            models.Permission.resource_type == resource_type,
            models.Permission.resource_id == _key(resource_id),
        )

    def upsert(self, user_id: int, resource_type: str, resource_id: ResourceId, permission_type: str) -> models.Permission:
        values = {
            "user_id": user_id,
            "resource_type": resource_type,
            "resource_id": _key(resource_id),
            "permission_type": permission_type,
        }
        insert = self._dialect_insert()
        try:
            if insert is not None:
                # INSERT ... ON CONFLICT DO UPDATE: 유일성 키 기준으로 한 문장에서 처리
                stmt = insert(models.Permission).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=_UNIQUE_KEY,
                    set_={"permission_type": stmt.excluded.permission_type},
                )
                self.db.execute(stmt)
                self.db.commit()
            else:
                try:
                    self.db.add(models.Permission(**values))
                    self.db.commit()
                except IntegrityError:
                    # 다른 요청이 같은 키로 먼저 생성함 -> 기존 행 갱신
                    self.db.rollback()
                    self._filter_key(user_id, resource_type, resource_id).update(
                        {"permission_type": permission_type}, synchronize_session=False
                    )
                    self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return self.find(user_id, resource_type, resource_id)

    def create_if_absent(self, user_id: int, resource_type: str, resource_id: ResourceId, permission_type: str) -> bool:
        values = {
            "user_id": user_id,
            "resource_type": resource_type,
            "resource_id": _key(resource_id),
            "permission_type": permission_type,
        }
        insert = self._dialect_insert()
        try:
            if insert is not None:
                stmt = insert(models.Permission).values(**values).on_conflict_do_nothing(index_elements=_UNIQUE_KEY)
                result = self.db.execute(stmt)
                self.db.commit()
                return result.rowcount == 1
            try:
                self.db.add(models.Permission(**values))
                self.db.commit()
                return True
            except IntegrityError:
                self.db.rollback()
                return False
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def remove(self, user_id: int, resource_type: str, resource_id: ResourceId) -> bool:
        try:
            deleted = self._filter_key(user_id, resource_type, resource_id).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return deleted > 0

    def find(self, user_id: int, resource_type: str, resource_id: ResourceId) -> Optional[models.Permission]:
        return self._filter_key(user_id, resource_type, resource_id).first()

    def list_by_user(self, user_id: int, resource_type: Optional[str] = None) -> List[models.Permission]:
        query = self.db.query(models.Permission).filter(models.Permission.user_id == user_id)
        if resource_type:
            query = query.filter(models.Permission.resource_type == resource_type)
        return query.order_by(models.Permission.resource_type.asc(), models.Permission.resource_id.asc()).all()

    def list_by_resource(self, resource_type: str, resource_id: ResourceId) -> List[models.Permission]:
        return self.db.query(models.Permission).filter(
            models.Permission.resource_type == resource_type,
            models.Permission.resource_id == _key(resource_id),
        ).order_by(models.Permission.user_id.asc()).all()

    def list_with_usernames(self, resource_type: Optional[str] = None) -> List[Tuple[str, models.Permission]]:
        query = self.db.query(models.User.username, models.Permission).join(
            models.User, models.User.id == models.Permission.user_id
        )
        if resource_type:
            query = query.filter(models.Permission.resource_type == resource_type)
        rows = query.order_by(
            models.User.username.asc(),
            models.Permission.resource_type.asc(),
            models.Permission.resource_id.asc(),
        ).all()
        return [(username, permission) for username, permission in rows]

    def resource_ids_for_user(self, user_id: int, resource_type: str) -> List[str]:
        rows = self.db.query(models.Permission.resource_id).filter(
            models.Permission.user_id == user_id,
            models.Permission.resource_type == resource_type,
        ).all()
        return [row[0] for row in rows]

    def distinct_user_ids(self) -> List[int]:
        return [row[0] for row in self.db.query(models.Permission.user_id).distinct().all()]

    def distinct_resource_ids(self, resource_type: str) -> List[str]:
        rows = self.db.query(models.Permission.resource_id).filter(
            models.Permission.resource_type == resource_type,
            models.Permission.resource_id != models.TYPE_WIDE,
        ).distinct().all()
        return [row[0] for row in rows]

    def delete_by_user_ids(self, user_ids: Iterable[int]) -> int:
        user_ids = list(user_ids)
        if not user_ids:
            return 0
        try:
            deleted = self.db.query(models.Permission).filter(
                models.Permission.user_id.in_(user_ids)
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return deleted

    def delete_by_resource_ids(self, resource_type: str, resource_ids: Iterable[str]) -> int:
        resource_ids = [_key(r) for r in resource_ids]
        if not resource_ids:
            return 0
        try:
            deleted = self.db.query(models.Permission).filter(
                models.Permission.resource_type == resource_type,
                models.Permission.resource_id.in_(resource_ids),
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return deleted
