from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from cicd_console.database import models

class IWorkspaceRepository(ABC):
    @abstractmethod
    def find_by_id(self, workspace_id: int) -> Optional[models.Workspace]:
        """고유 ID로 특정 워크스페이스를 조회합니다."""
        pass

    @abstractmethod
    def list_by_ids(self, workspace_ids: Iterable[int]) -> List[models.Workspace]:
        """주어진 ID 중 실제로 존재하는 워크스페이스들을 조회합니다."""
        pass
