from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from cicd_console.database import models

class IUserRepository(ABC):
    @abstractmethod
    def find_by_id(self, user_id: int) -> Optional[models.User]:
        """고유 ID로 특정 사용자를 조회합니다."""
        pass

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[models.User]:
        """사용자 이름으로 특정 사용자를 조회합니다."""
        pass

    @abstractmethod
    def list_by_ids(self, user_ids: Iterable[int]) -> List[models.User]:
        """주어진 ID 중 실제로 존재하는 사용자들을 조회합니다."""
        pass

    @abstractmethod
    def update_last_login(self, user: models.User) -> None:
        """사용자의 마지막 로그인 시각을 현재 시각으로 갱신합니다."""
        pass
