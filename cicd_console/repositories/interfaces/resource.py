from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
from cicd_console.database import models

class IResourceRepository(ABC):
    @abstractmethod
    def find_by_id(self, resource_id: int) -> Optional[models.Resource]:
        """고유 ID로 특정 머신을 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.Resource]:
        """모든 머신의 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_by_ids(self, resource_ids: Iterable[int]) -> List[models.Resource]:
        """주어진 ID 중 실제로 존재하는 머신들을 조회합니다."""
        pass
