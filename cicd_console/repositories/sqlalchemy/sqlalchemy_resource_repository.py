from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from cicd_console.database import models
from cicd_console.repositories.interfaces import IResourceRepository

class SqlalchemyResourceRepository(IResourceRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_id(self, resource_id: int) -> Optional[models.Resource]:
        return self.db.query(models.Resource).filter(models.Resource.id == resource_id).first()

    def list_all(self) -> List[models.Resource]:
        return self.db.query(models.Resource).order_by(models.Resource.name.asc()).all()

    def list_by_ids(self, resource_ids: Iterable[int]) -> List[models.Resource]:
        resource_ids = list(resource_ids)
        if not resource_ids:
            return []
        return self.db.query(models.Resource).filter(models.Resource.id.in_(resource_ids)).all()
