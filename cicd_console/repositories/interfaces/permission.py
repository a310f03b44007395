from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple, Union
from cicd_console.database import models

# 프로젝트/머신 ID(int)와 시스템 기능 키(str)를 모두 받습니다. None은 유형 전체 권한입니다.
ResourceId = Optional[Union[int, str]]

class IPermissionRepository(ABC):
    """
    권한 저장소입니다.
    (user_id, resource_type, resource_id) 조합의 유일성은 이 저장소가 보장합니다.
    """

    @abstractmethod
    def upsert(self, user_id: int, resource_type: str, resource_id: ResourceId, permission_type: str) -> models.Permission:
        """
        권한을 원자적으로 생성하거나, 이미 있으면 permission_type만 갱신합니다.

        Returns:
            저장된 권한 행.
        """
        pass

    @abstractmethod
    def create_if_absent(self, user_id: int, resource_type: str, resource_id: ResourceId, permission_type: str) -> bool:
        """권한이 없을 때만 생성합니다. 기존 권한은 절대 덮어쓰지 않습니다. 새로 생성했으면 True."""
        pass

    @abstractmethod
    def remove(self, user_id: int, resource_type: str, resource_id: ResourceId) -> bool:
        """권한을 삭제합니다. 삭제할 행이 있었으면 True를 반환합니다."""
        pass

    @abstractmethod
    def find(self, user_id: int, resource_type: str, resource_id: ResourceId) -> Optional[models.Permission]:
        """특정 사용자의 특정 리소스에 대한 권한을 조회합니다."""
        pass

    @abstractmethod
    def list_by_user(self, user_id: int, resource_type: Optional[str] = None) -> List[models.Permission]:
        """사용자의 모든 권한을 (resource_type, resource_id) 순으로 조회합니다. resource_type으로 필터링할 수 있습니다."""
        pass

    @abstractmethod
    def list_by_resource(self, resource_type: str, resource_id: ResourceId) -> List[models.Permission]:
        """특정 리소스에 부여된 모든 권한을 조회합니다."""
        pass

    @abstractmethod
    def list_with_usernames(self, resource_type: Optional[str] = None) -> List[Tuple[str, models.Permission]]:
        """권한 행과 소유 사용자 이름을 함께 조회합니다. 사용자가 삭제된 행은 제외됩니다."""
        pass

    @abstractmethod
    def resource_ids_for_user(self, user_id: int, resource_type: str) -> List[str]:
        """사용자가 특정 유형에 대해 권한을 가진 resource_id 목록을 조회합니다. (권한 종류 무관)"""
        pass

    @abstractmethod
    def distinct_user_ids(self) -> List[int]:
        """권한 테이블에 등장하는 모든 user_id를 중복 없이 조회합니다."""
        pass

    @abstractmethod
    def distinct_resource_ids(self, resource_type: str) -> List[str]:
        """특정 유형의 권한에 등장하는 resource_id를 중복 없이 조회합니다. (유형 전체 권한 제외)"""
        pass

    @abstractmethod
    def delete_by_user_ids(self, user_ids: Iterable[int]) -> int:
        """주어진 사용자들의 권한을 모두 삭제하고, 삭제된 행 수를 반환합니다."""
        pass

    @abstractmethod
    def delete_by_resource_ids(self, resource_type: str, resource_ids: Iterable[str]) -> int:
        """특정 유형에서 주어진 resource_id들의 권한을 모두 삭제하고, 삭제된 행 수를 반환합니다."""
        pass
