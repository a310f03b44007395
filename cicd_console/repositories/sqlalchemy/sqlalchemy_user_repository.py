from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from cicd_console.database import models
from cicd_console.repositories.interfaces import IUserRepository

class SqlalchemyUserRepository(IUserRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_id(self, user_id: int) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.id == user_id).first()

    def find_by_username(self, username: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.username == username).first()

    def list_by_ids(self, user_ids: Iterable[int]) -> List[models.User]:
        user_ids = list(user_ids)
        if not user_ids:
            return []
        return self.db.query(models.User).filter(models.User.id.in_(user_ids)).all()

    def update_last_login(self, user: models.User) -> None:
        user.last_login = datetime.now()
        self.db.commit()
