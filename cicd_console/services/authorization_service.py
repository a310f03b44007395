import logging
from typing import Any, Dict, Iterable, List, Optional

from cicd_console.database import models
from cicd_console.repositories.interfaces import (
    IPermissionRepository, IProjectRepository, IResourceRepository, IUserRepository, ResourceId
)
from cicd_console.services.audit_service import AuditService
from cicd_console.services.exceptions import (
    InvalidArgumentError, ProjectNotFoundError, UserNotFoundError
)
from cicd_console.services.resource_registry import ResourceRegistry, numeric_ids

logger = logging.getLogger(__name__)

RESOURCE_TYPES = models.RESOURCE_TYPES
PERMISSION_TYPES = models.PERMISSION_TYPES

# 시스템 기능별로 필요한 기본 권한 종류
SYSTEM_FEATURES = {
    "user_management": "admin",
    "system_config": "admin",
    "system_monitor": "admin",
    "log_view": "read",
}

# 고아 권한 정리 시 리소스 존재 여부를 확인하는 유형
ORPHAN_SWEPT_TYPES = ("project", "workspace", "resource")


class AuthorizationService:
    """
    권한 판정(정책 엔진)과 권한 관리(부여/회수/복사/일괄 처리/정리)를 제공합니다.

    판정 메서드(check*, get_user_accessible_*)는 부수 효과가 없습니다.
    감사 로그는 권한 데이터를 변경하는 메서드에서만 기록합니다.
    """

    def __init__(
        self,
        permission_repo: IPermissionRepository,
        user_repo: IUserRepository,
        project_repo: IProjectRepository,
        resource_repo: IResourceRepository,
        registry: ResourceRegistry,
        audit_service: Optional[AuditService] = None,
    ):
        """
        AuthorizationService를 초기화합니다.

        Args:
            permission_repo: 권한 저장소.
            user_repo: 사용자 조회용 리포지토리 (부여 대상 검증, 고아 권한 확인).
            project_repo: 프로젝트 조회용 리포지토리 (계층적 접근 판정).
            resource_repo: 머신 조회용 리포지토리.
            registry: 리소스 유형별 이름 조회/존재 확인 레지스트리.
            audit_service: 권한 변경 이력을 남길 감사 로그 서비스. 없으면 기록하지 않습니다.
        """
        self.permission_repo = permission_repo
        self.user_repo = user_repo
        self.project_repo = project_repo
        self.resource_repo = resource_repo
        self.registry = registry
        self.audit_service = audit_service

    # ------------------------------------------------------------------
    # 권한 판정
    # ------------------------------------------------------------------

    def check(self, user: Optional[models.User], resource_type: str,
              resource_id: ResourceId = None, permission_type: str = "read") -> bool:
        """
        사용자가 리소스에 대해 정확히 permission_type 권한을 가지고 있는지 확인합니다.
        권한 종류 사이에는 포함 관계가 없습니다. (write 권한이 read를 의미하지 않음)
        관리자는 항상 True입니다.
        """
        if user is None:
            return False
        if user.is_admin:
            return True
        permission = self.permission_repo.find(user.id, resource_type, resource_id)
        return permission is not None and permission.permission_type == permission_type

    def check_project_access(self, user: Optional[models.User], project: models.Project,
                             permission_type: str = "read") -> bool:
        """
        프로젝트 접근 여부를 판정합니다. 아래 경로 중 하나라도 만족하면 허용합니다.

        1. 관리자
        2. 프로젝트 소유자
        3. 프로젝트에 대한 직접 권한
        4. 프로젝트가 속한 워크스페이스에 대한 권한
        """
        if user is None:
            return False
        if user.is_admin:
            return True
        if project.user_id == user.id:
            return True
        if self.check(user, "project", project.id, permission_type):
            return True
        if project.workspace_id is not None and self.check(user, "workspace", project.workspace_id, permission_type):
            return True
        return False

    def check_project_access_by_id(self, user: Optional[models.User], project_id: int,
                                   permission_type: str = "read") -> bool:
        """ID로 프로젝트를 찾아 접근 여부를 판정합니다. 프로젝트가 없으면 False."""
        project = self.project_repo.find_by_id(project_id)
        return project is not None and self.check_project_access(user, project, permission_type)

    def check_resource_access(self, user: Optional[models.User], resource: models.Resource,
                              permission_type: str = "read") -> bool:
        return self.check(user, "resource", resource.id, permission_type)

    def check_resource_access_by_id(self, user: Optional[models.User], resource_id: int,
                                    permission_type: str = "read") -> bool:
        """ID로 머신을 찾아 접근 여부를 판정합니다. 머신이 없으면 False."""
        resource = self.resource_repo.find_by_id(resource_id)
        return resource is not None and self.check_resource_access(user, resource, permission_type)

    def check_system_access(self, user: Optional[models.User], feature: str,
                            permission_type: Optional[str] = None) -> bool:
        """
        시스템 기능 접근 여부를 판정합니다.
        permission_type을 생략하면 기능별 기본 요구 권한(SYSTEM_FEATURES)을 사용합니다.
        등록되지 않은 기능은 관리자만 접근할 수 있습니다.
        """
        if user is None:
            return False
        if user.is_admin:
            return True
        if feature not in SYSTEM_FEATURES:
            return False
        return self.check(user, "system", feature, permission_type or SYSTEM_FEATURES[feature])

    def get_user_accessible_projects(self, user: models.User) -> List[models.Project]:
        """
        사용자가 접근할 수 있는 프로젝트 목록을 반환합니다.

        소유한 프로젝트, 직접 권한이 있는 프로젝트, 권한이 있는 워크스페이스의 프로젝트를
        합집합으로 모으며, 여러 경로로 접근 가능한 프로젝트도 한 번만 포함됩니다.
        결과는 프로젝트 이름순입니다.
        """
        if user.is_admin:
            return self.project_repo.list_all()

        project_ids = numeric_ids(self.permission_repo.resource_ids_for_user(user.id, "project"))
        workspace_ids = numeric_ids(self.permission_repo.resource_ids_for_user(user.id, "workspace"))

        accessible: Dict[int, models.Project] = {}
        for project in self.project_repo.list_by_owner(user.id):
            accessible[project.id] = project
        for project in self.project_repo.list_by_ids(project_ids):
            accessible[project.id] = project
        for project in self.project_repo.list_by_workspace_ids(workspace_ids):
            accessible[project.id] = project

        return sorted(accessible.values(), key=lambda p: p.name)

    def get_user_accessible_resources(self, user: models.User) -> List[models.Resource]:
        """사용자가 권한을 가진 머신 목록을 반환합니다. 관리자는 전체 목록입니다."""
        if user.is_admin:
            return self.resource_repo.list_all()
        resource_ids = numeric_ids(self.permission_repo.resource_ids_for_user(user.id, "resource"))
        return sorted(self.resource_repo.list_by_ids(resource_ids), key=lambda r: r.name)

    def find_project(self, project_id: int) -> models.Project:
        """
        Raises:
            ProjectNotFoundError: 해당 ID의 프로젝트를 찾을 수 없을 때.
        """
        project = self.project_repo.find_by_id(project_id)
        if not project:
            raise ProjectNotFoundError(f"Project with id '{project_id}' not found.")
        return project

    # ------------------------------------------------------------------
    # 권한 관리
    # ------------------------------------------------------------------

    def _validate_resource_type(self, resource_type: str):
        if resource_type not in RESOURCE_TYPES:
            raise InvalidArgumentError(f"Invalid resource type '{resource_type}'.")

    def _validate_permission_type(self, permission_type: str):
        if permission_type not in PERMISSION_TYPES:
            raise InvalidArgumentError(f"Invalid permission type '{permission_type}'.")

    def _audit(self, message: str, actor_id: Optional[int], action: str,
               resource_type: Optional[str] = None, resource_id: ResourceId = None):
        if self.audit_service is not None:
            self.audit_service.audit_log(message, actor_id, action, resource_type, resource_id)

    def grant(self, user_id: int, resource_type: str, resource_id: ResourceId,
              permission_type: str, granted_by: Optional[int] = None) -> models.Permission:
        """
        사용자에게 권한을 부여합니다.
        같은 (사용자, 유형, 리소스)에 이미 권한이 있으면 permission_type만 덮어씁니다.

        Raises:
            InvalidArgumentError: 알 수 없는 리소스 유형 또는 권한 종류일 때.
            UserNotFoundError: 대상 사용자가 존재하지 않을 때.
        """
        self._validate_resource_type(resource_type)
        self._validate_permission_type(permission_type)
        if not self.user_repo.find_by_id(user_id):
            raise UserNotFoundError(f"User with id '{user_id}' not found.")

        permission = self.permission_repo.upsert(user_id, resource_type, resource_id, permission_type)

        logger.info("Granted %s on %s:%s to user %s", permission_type, resource_type, resource_id, user_id)
        self._audit(
            f"Granted permission: {permission_type} on {resource_type}:{resource_id} to user:{user_id}",
            granted_by, "grant_permission", resource_type, resource_id,
        )
        return permission

    def revoke(self, user_id: int, resource_type: str, resource_id: ResourceId,
               revoked_by: Optional[int] = None) -> bool:
        """
        사용자의 권한을 회수합니다. 회수할 권한이 없으면 아무것도 하지 않고 False를 반환합니다.

        Raises:
            InvalidArgumentError: 알 수 없는 리소스 유형일 때.
        """
        self._validate_resource_type(resource_type)

        existing = self.permission_repo.find(user_id, resource_type, resource_id)
        if existing is None:
            return False
        previous_type = existing.permission_type
        if not self.permission_repo.remove(user_id, resource_type, resource_id):
            return False

        logger.info("Revoked %s on %s:%s from user %s", previous_type, resource_type, resource_id, user_id)
        self._audit(
            f"Revoked permission: {previous_type} on {resource_type}:{resource_id} from user:{user_id}",
            revoked_by, "revoke_permission", resource_type, resource_id,
        )
        return True

    def list_user_permissions(self, user_id: int) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self.permission_repo.list_by_user(user_id)]

    def list_resource_permissions(self, resource_type: str, resource_id: ResourceId) -> List[Dict[str, Any]]:
        """특정 리소스에 부여된 권한 목록을 사용자 이름, 리소스 표시 이름과 함께 반환합니다."""
        self._validate_resource_type(resource_type)
        permissions = self.permission_repo.list_by_resource(resource_type, resource_id)
        usernames = {u.id: u.username for u in self.user_repo.list_by_ids({p.user_id for p in permissions})}
        resource_name = self.registry.display_name(resource_type, resource_id)
        return [
            dict(p.to_dict(), username=usernames.get(p.user_id), resource_name=resource_name)
            for p in permissions
        ]

    def copy_permissions(self, from_user_id: int, to_user_id: int,
                         resource_type: Optional[str] = None, copied_by: Optional[int] = None) -> int:
        """
        한 사용자의 권한을 다른 사용자에게 복사합니다.
        대상 사용자가 이미 같은 리소스에 권한을 가지고 있으면 덮어쓰지 않고 건너뜁니다.

        Returns:
            새로 생성된 권한 수. 이미 모두 복사된 상태에서 다시 실행하면 0입니다.

        Raises:
            InvalidArgumentError: resource_type 필터가 알 수 없는 유형일 때.
            UserNotFoundError: 원본 또는 대상 사용자가 존재하지 않을 때.
        """
        if resource_type is not None:
            self._validate_resource_type(resource_type)
        if not self.user_repo.find_by_id(from_user_id):
            raise UserNotFoundError(f"Source user with id '{from_user_id}' not found.")
        if not self.user_repo.find_by_id(to_user_id):
            raise UserNotFoundError(f"Target user with id '{to_user_id}' not found.")

        copied_count = 0
        for permission in self.permission_repo.list_by_user(from_user_id, resource_type):
            if self.permission_repo.create_if_absent(
                to_user_id, permission.resource_type, permission.scoped_id, permission.permission_type
            ):
                copied_count += 1

        self._audit(
            f"Copied permissions: from user:{from_user_id} to user:{to_user_id}, {copied_count} created",
            copied_by, "copy_permissions",
        )
        return copied_count

    def bulk_grant(self, user_ids: Iterable[int], resource_type: str, resource_id: ResourceId,
                   permission_type: str, granted_by: Optional[int] = None) -> int:
        """
        여러 사용자에게 같은 권한을 부여합니다.
        개별 사용자에 대한 실패는 로그만 남기고 나머지 처리를 계속합니다.

        Returns:
            부여에 성공한 사용자 수.
        """
        self._validate_resource_type(resource_type)
        self._validate_permission_type(permission_type)

        granted_count = 0
        for user_id in user_ids:
            try:
                self.grant(user_id, resource_type, resource_id, permission_type, granted_by)
                granted_count += 1
            except Exception as e:
                logger.error("Bulk grant failed for user %s: %s", user_id, e)
                if self.audit_service is not None:
                    self.audit_service.system_log("error", f"Bulk grant failed user:{user_id} - {e}")

        self._audit(
            f"Bulk granted: {permission_type} on {resource_type}:{resource_id} to {granted_count} users",
            granted_by, "bulk_grant_permissions", resource_type, resource_id,
        )
        return granted_count

    def bulk_revoke(self, user_ids: Iterable[int], resource_type: str, resource_id: ResourceId,
                    revoked_by: Optional[int] = None) -> int:
        """
        여러 사용자의 권한을 회수합니다. 개별 실패는 로그만 남기고 계속 진행합니다.

        Returns:
            실제로 권한이 회수된 사용자 수.
        """
        self._validate_resource_type(resource_type)

        revoked_count = 0
        for user_id in user_ids:
            try:
                if self.revoke(user_id, resource_type, resource_id, revoked_by):
                    revoked_count += 1
            except Exception as e:
                logger.error("Bulk revoke failed for user %s: %s", user_id, e)
                if self.audit_service is not None:
                    self.audit_service.system_log("error", f"Bulk revoke failed user:{user_id} - {e}")

        self._audit(
            f"Bulk revoked: {resource_type}:{resource_id} from {revoked_count} users",
            revoked_by, "bulk_revoke_permissions", resource_type, resource_id,
        )
        return revoked_count

    def cleanup_orphaned_permissions(self) -> Dict[str, int]:
        """
        삭제된 사용자의 권한과, 삭제된 프로젝트/워크스페이스/머신을 가리키는 권한을 제거합니다.
        주기적인 유지보수 작업으로 실행하며, 실시간 요청과 별도의 잠금은 필요하지 않습니다.

        Returns:
            분류별 삭제 건수.
        """
        user_ids = self.permission_repo.distinct_user_ids()
        live_user_ids = {u.id for u in self.user_repo.list_by_ids(user_ids)}
        missing_users = [u for u in user_ids if u not in live_user_ids]

        counts = {"deleted_user_permissions": self.permission_repo.delete_by_user_ids(missing_users)}
        for resource_type in ORPHAN_SWEPT_TYPES:
            resource_ids = self.permission_repo.distinct_resource_ids(resource_type)
            missing = self.registry.find_missing(resource_type, resource_ids)
            counts[f"deleted_{resource_type}_permissions"] = self.permission_repo.delete_by_resource_ids(
                resource_type, sorted(missing)
            )

        logger.info("Orphaned permission cleanup: %s", counts)
        if self.audit_service is not None:
            self.audit_service.system_log("info", "Cleaned up orphaned permissions", details=counts)
        return counts

    def get_permission_matrix(self, resource_type: Optional[str] = None) -> Dict[str, Dict[str, str]]:
        """
        사용자 이름 -> "유형:ID" -> 권한 종류 형태의 권한 매트릭스를 반환합니다. (보고용)
        """
        if resource_type is not None:
            self._validate_resource_type(resource_type)

        matrix: Dict[str, Dict[str, str]] = {}
        for username, permission in self.permission_repo.list_with_usernames(resource_type):
            resource_key = f"{permission.resource_type}:{permission.scoped_id or ''}"
            matrix.setdefault(username, {})[resource_key] = permission.permission_type
        return matrix
