from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from cicd_console.database import models

class IProjectRepository(ABC):
    @abstractmethod
    def find_by_id(self, project_id: int) -> Optional[models.Project]:
        """고유 ID로 특정 프로젝트를 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.Project]:
        """모든 프로젝트의 목록을 이름순으로 조회합니다."""
        pass

    @abstractmethod
    def list_by_owner(self, user_id: int) -> List[models.Project]:
        """특정 사용자가 소유한 프로젝트 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_by_ids(self, project_ids: Iterable[int]) -> List[models.Project]:
        """주어진 ID 중 실제로 존재하는 프로젝트들을 조회합니다."""
        pass

    @abstractmethod
    def list_by_workspace_ids(self, workspace_ids: Iterable[int]) -> List[models.Project]:
        """주어진 워크스페이스들에 속한 프로젝트 목록을 조회합니다."""
        pass
