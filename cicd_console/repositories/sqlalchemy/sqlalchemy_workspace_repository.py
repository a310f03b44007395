from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from cicd_console.database import models
from cicd_console.repositories.interfaces import IWorkspaceRepository

class SqlalchemyWorkspaceRepository(IWorkspaceRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_id(self, workspace_id: int) -> Optional[models.Workspace]:
        return self.db.query(models.Workspace).filter(models.Workspace.id == workspace_id).first()

    def list_by_ids(self, workspace_ids: Iterable[int]) -> List[models.Workspace]:
        workspace_ids = list(workspace_ids)
        if not workspace_ids:
            return []
        return self.db.query(models.Workspace).filter(models.Workspace.id.in_(workspace_ids)).all()
