from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from cicd_console.database import models
from cicd_console.repositories.interfaces import IProjectRepository

class SqlalchemyProjectRepository(IProjectRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_id(self, project_id: int) -> Optional[models.Project]:
        return self.db.query(models.Project).filter(models.Project.id == project_id).first()

    def list_all(self) -> List[models.Project]:
        return self.db.query(models.Project).order_by(models.Project.name.asc()).all()

    def list_by_owner(self, user_id: int) -> List[models.Project]:
        return self.db.query(models.Project).filter(models.Project.user_id == user_id).all()

    def list_by_ids(self, project_ids: Iterable[int]) -> List[models.Project]:
        project_ids = list(project_ids)
        if not project_ids:
            return []
        return self.db.query(models.Project).filter(models.Project.id.in_(project_ids)).all()

    def list_by_workspace_ids(self, workspace_ids: Iterable[int]) -> List[models.Project]:
        workspace_ids = list(workspace_ids)
        if not workspace_ids:
            return []
        return self.db.query(models.Project).filter(models.Project.workspace_id.in_(workspace_ids)).all()
