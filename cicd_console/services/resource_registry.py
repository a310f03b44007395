from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set

from cicd_console.repositories.interfaces import (
    IProjectRepository, IResourceRepository, IWorkspaceRepository
)

# 시스템 기능 키와 화면 표시 이름
SYSTEM_FEATURE_NAMES = {
    "user_management": "User management",
    "system_config": "System configuration",
    "system_monitor": "System monitor",
    "log_view": "Log viewer",
}


@dataclass(frozen=True)
class ResourceTypeHandler:
    """리소스 유형 하나에 대한 이름 조회 함수와 존재 확인 함수의 묶음입니다."""
    name_lookup: Callable[[str], Optional[str]]
    existing_ids: Optional[Callable[[Iterable[str]], Set[str]]] = None


def numeric_ids(resource_ids: Iterable[str]) -> List[int]:
    """숫자로 된 ID만 정수로 변환합니다. 숫자가 아닌 ID는 존재할 수 없는 ID로 취급합니다."""
    return [int(r) for r in resource_ids if str(r).isdigit()]


class ResourceRegistry:
    """
    resource_type 별 이름 조회/존재 확인 로직을 한 곳에 등록해두는 레지스트리입니다.
    새 리소스 유형이 추가되면 register()만 호출하면 됩니다.
    """

    def __init__(self):
        self._handlers: Dict[str, ResourceTypeHandler] = {}

    def register(self, resource_type: str, name_lookup: Callable[[str], Optional[str]],
                 existing_ids: Optional[Callable[[Iterable[str]], Set[str]]] = None):
        self._handlers[resource_type] = ResourceTypeHandler(name_lookup, existing_ids)

    def display_name(self, resource_type: str, resource_id) -> str:
        """리소스의 표시 이름을 반환합니다. 찾을 수 없으면 'type:id' 형식으로 대신합니다."""
        fallback = f"{resource_type}:{'' if resource_id is None else resource_id}"
        handler = self._handlers.get(resource_type)
        if handler is None or resource_id is None:
            return fallback
        return handler.name_lookup(str(resource_id)) or fallback

    def find_missing(self, resource_type: str, resource_ids: Iterable[str]) -> Set[str]:
        """
        주어진 ID 중 더 이상 존재하지 않는 ID의 집합을 반환합니다.
        존재 확인 함수가 등록되지 않은 유형은 항상 빈 집합입니다.
        """
        resource_ids = {str(r) for r in resource_ids}
        handler = self._handlers.get(resource_type)
        if handler is None or handler.existing_ids is None or not resource_ids:
            return set()
        return resource_ids - handler.existing_ids(resource_ids)


def build_resource_registry(project_repo: IProjectRepository,
                            workspace_repo: IWorkspaceRepository,
                            resource_repo: IResourceRepository) -> ResourceRegistry:
    """프로젝트, 워크스페이스, 머신, 시스템 기능을 등록한 기본 레지스트리를 만듭니다."""

    def lookup(find_by_id):
        def _lookup(resource_id: str) -> Optional[str]:
            if not resource_id.isdigit():
                return None
            entity = find_by_id(int(resource_id))
            return entity.name if entity else None
        return _lookup

    def existing(list_by_ids):
        def _existing(resource_ids: Iterable[str]) -> Set[str]:
            return {str(entity.id) for entity in list_by_ids(numeric_ids(resource_ids))}
        return _existing

    registry = ResourceRegistry()
    registry.register("project", lookup(project_repo.find_by_id), existing(project_repo.list_by_ids))
    registry.register("workspace", lookup(workspace_repo.find_by_id), existing(workspace_repo.list_by_ids))
    registry.register("resource", lookup(resource_repo.find_by_id), existing(resource_repo.list_by_ids))
    registry.register("system", SYSTEM_FEATURE_NAMES.get)
    return registry
