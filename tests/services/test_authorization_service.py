# tests/services/test_authorization_service.py
import pytest
from unittest.mock import MagicMock, call

from cicd_console.services.authorization_service import AuthorizationService
from cicd_console.services.audit_service import AuditService
from cicd_console.services.resource_registry import ResourceRegistry
from cicd_console.services.exceptions import *
from cicd_console.repositories.interfaces import (
    IPermissionRepository, IProjectRepository, IResourceRepository, IUserRepository
)
from cicd_console.database import models

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_permission_repo() -> MagicMock:
    return MagicMock(spec=IPermissionRepository)

@pytest.fixture
def mock_user_repo() -> MagicMock:
    return MagicMock(spec=IUserRepository)

@pytest.fixture
def mock_project_repo() -> MagicMock:
    return MagicMock(spec=IProjectRepository)

@pytest.fixture
def mock_resource_repo() -> MagicMock:
    return MagicMock(spec=IResourceRepository)

@pytest.fixture
def mock_registry() -> MagicMock:
    return MagicMock(spec=ResourceRegistry)

@pytest.fixture
def mock_audit() -> MagicMock:
    return MagicMock(spec=AuditService)

@pytest.fixture
def authz(mock_permission_repo, mock_user_repo, mock_project_repo, mock_resource_repo,
          mock_registry, mock_audit) -> AuthorizationService:
    """테스트에 사용될 AuthorizationService 인스턴스를 생성하고, 의존성을 주입합니다."""
    return AuthorizationService(
        mock_permission_repo, mock_user_repo, mock_project_repo, mock_resource_repo,
        mock_registry, mock_audit,
    )

def make_user(user_id=7, role="user"):
    return models.User(id=user_id, username=f"user{user_id}", role=role, active=True)

def grant_row(user_id, resource_type, resource_id, permission_type):
    return models.Permission(
        user_id=user_id, resource_type=resource_type,
        resource_id="" if resource_id is None else str(resource_id), permission_type=permission_type,
    )

# ===================================================================
#  권한 판정 테스트
# ===================================================================
class TestCheck:
    @pytest.mark.parametrize("resource_type, resource_id, permission_type", [
        ("project", 1, "read"),
        ("workspace", None, "admin"),
        ("system", "user_management", "write"),
    ])
    def test_admin_always_allowed(self, authz, mock_permission_repo, resource_type, resource_id, permission_type):
        """관리자는 저장된 권한과 관계없이 항상 허용되는지 테스트합니다."""
        admin = make_user(1, role="admin")

        assert authz.check(admin, resource_type, resource_id, permission_type) is True
        # 검증: 관리자는 권한 저장소를 조회하지 않음
        mock_permission_repo.find.assert_not_called()

    def test_permission_types_are_not_hierarchical(self, authz, mock_permission_repo):
        """write 권한이 read 권한을 의미하지 않는지 테스트합니다."""
        # === Arrange ===
        user = make_user(7)
        mock_permission_repo.find.return_value = grant_row(7, "workspace", 3, "write")

        # === Act & Assert ===
        assert authz.check(user, "workspace", 3, "write") is True
        assert authz.check(user, "workspace", 3, "read") is False
        mock_permission_repo.find.assert_called_with(7, "workspace", 3)

    def test_no_grant_denied(self, authz, mock_permission_repo):
        mock_permission_repo.find.return_value = None
        assert authz.check(make_user(7), "project", 1, "read") is False

    def test_missing_user_denied(self, authz):
        assert authz.check(None, "project", 1, "read") is False


class TestProjectAccess:
    def test_owner_allowed_without_grants(self, authz, mock_permission_repo):
        user = make_user(7)
        project = models.Project(id=1, name="p1", user_id=7, workspace_id=None)

        assert authz.check_project_access(user, project, "admin") is True
        mock_permission_repo.find.assert_not_called()

    def test_direct_project_grant(self, authz, mock_permission_repo):
        user = make_user(7)
        project = models.Project(id=2, name="p2", user_id=99, workspace_id=None)
        mock_permission_repo.find.return_value = grant_row(7, "project", 2, "read")

        assert authz.check_project_access(user, project, "read") is True

    def test_workspace_grant_covers_project(self, authz, mock_permission_repo):
        """프로젝트가 속한 워크스페이스의 권한으로 접근이 허용되는지 테스트합니다."""
        # === Arrange ===
        user = make_user(7)
        project = models.Project(id=3, name="p3", user_id=99, workspace_id=10)
        # 시나리오: 프로젝트 직접 권한은 없고, 워크스페이스 권한만 있음
        mock_permission_repo.find.side_effect = lambda u, t, r: (
            grant_row(7, "workspace", 10, "read") if t == "workspace" else None
        )

        # === Act & Assert ===
        assert authz.check_project_access(user, project, "read") is True
        mock_permission_repo.find.assert_has_calls([call(7, "project", 3), call(7, "workspace", 10)])

    def test_unrelated_project_denied(self, authz, mock_permission_repo):
        mock_permission_repo.find.return_value = None
        project = models.Project(id=4, name="p4", user_id=99, workspace_id=10)

        assert authz.check_project_access(make_user(7), project, "read") is False

    def test_missing_project_by_id_denied(self, authz, mock_project_repo):
        mock_project_repo.find_by_id.return_value = None
        assert authz.check_project_access_by_id(make_user(7), 404, "read") is False

    def test_missing_resource_by_id_denied(self, authz, mock_resource_repo, mock_permission_repo):
        mock_resource_repo.find_by_id.return_value = None

        assert authz.check_resource_access_by_id(make_user(7), 5, "read") is False
        mock_permission_repo.find.assert_not_called()


class TestSystemAccess:
    def test_log_view_requires_read(self, authz, mock_permission_repo):
        mock_permission_repo.find.return_value = grant_row(7, "system", "log_view", "read")

        assert authz.check_system_access(make_user(7), "log_view") is True
        mock_permission_repo.find.assert_called_once_with(7, "system", "log_view")

    def test_system_config_requires_admin(self, authz, mock_permission_repo):
        mock_permission_repo.find.return_value = grant_row(7, "system", "system_config", "read")
        assert authz.check_system_access(make_user(7), "system_config") is False

    def test_unknown_feature_denied_for_non_admin(self, authz, mock_permission_repo):
        assert authz.check_system_access(make_user(7), "self_destruct") is False
        mock_permission_repo.find.assert_not_called()

    def test_unknown_feature_allowed_for_admin(self, authz):
        assert authz.check_system_access(make_user(1, role="admin"), "self_destruct") is True


class TestAccessibleProjects:
    def test_union_without_duplicates(self, authz, mock_permission_repo, mock_project_repo):
        """소유/직접 권한/워크스페이스 권한의 합집합이 중복 없이 이름순으로 반환되는지 테스트합니다."""
        # === Arrange ===
        user = make_user(7)
        p1 = models.Project(id=1, name="alpha", user_id=7, workspace_id=None)
        p2 = models.Project(id=2, name="bravo", user_id=99, workspace_id=None)
        p3 = models.Project(id=3, name="charlie", user_id=99, workspace_id=10)
        mock_permission_repo.resource_ids_for_user.side_effect = lambda u, t: {
            "project": ["2", "1"], "workspace": ["10"]
        }[t]
        mock_project_repo.list_by_owner.return_value = [p1]
        # 시나리오: p1은 소유와 직접 권한 두 경로로 접근 가능
        mock_project_repo.list_by_ids.return_value = [p2, p1]
        mock_project_repo.list_by_workspace_ids.return_value = [p3]

        # === Act ===
        projects = authz.get_user_accessible_projects(user)

        # === Assert ===
        assert [p.id for p in projects] == [1, 2, 3]
        mock_project_repo.list_by_ids.assert_called_once_with([2, 1])
        mock_project_repo.list_by_workspace_ids.assert_called_once_with([10])

    def test_admin_gets_all(self, authz, mock_project_repo):
        mock_project_repo.list_all.return_value = ["every", "project"]
        assert authz.get_user_accessible_projects(make_user(1, role="admin")) == ["every", "project"]

    def test_accessible_resources_sorted_by_name(self, authz, mock_permission_repo, mock_resource_repo):
        mock_permission_repo.resource_ids_for_user.return_value = ["4", "", "2"]
        mock_resource_repo.list_by_ids.return_value = [
            models.Resource(id=4, name="web-02", ip="10.0.0.4"),
            models.Resource(id=2, name="build-01", ip="10.0.0.2"),
        ]

        resources = authz.get_user_accessible_resources(make_user(7))

        assert [r.name for r in resources] == ["build-01", "web-02"]
        mock_permission_repo.resource_ids_for_user.assert_called_once_with(7, "resource")
        mock_resource_repo.list_by_ids.assert_called_once_with([4, 2])

    def test_find_project_missing_raises(self, authz, mock_project_repo):
        mock_project_repo.find_by_id.return_value = None
        with pytest.raises(ProjectNotFoundError):
            authz.find_project(1)

# ===================================================================
#  권한 관리 테스트
# ===================================================================
class TestGrantRevoke:
    def test_grant_success(self, authz, mock_permission_repo, mock_user_repo, mock_audit):
        # === Arrange ===
        mock_user_repo.find_by_id.return_value = make_user(7)
        stored = grant_row(7, "project", 1, "write")
        mock_permission_repo.upsert.return_value = stored

        # === Act ===
        permission = authz.grant(7, "project", 1, "write", granted_by=1)

        # === Assert ===
        assert permission is stored
        mock_permission_repo.upsert.assert_called_once_with(7, "project", 1, "write")
        mock_audit.audit_log.assert_called_once()
        assert mock_audit.audit_log.call_args.args[1:3] == (1, "grant_permission")

    @pytest.mark.parametrize("resource_type, permission_type", [
        ("spaceship", "read"),
        ("project", "execute"),
    ])
    def test_grant_rejects_unknown_enums(self, authz, mock_permission_repo, mock_user_repo,
                                         resource_type, permission_type):
        """알 수 없는 유형/권한은 저장소 호출 전에 거부되는지 테스트합니다."""
        with pytest.raises(InvalidArgumentError):
            authz.grant(7, resource_type, 1, permission_type)
        mock_user_repo.find_by_id.assert_not_called()
        mock_permission_repo.upsert.assert_not_called()

    def test_invalid_argument_is_value_error(self):
        assert issubclass(InvalidArgumentError, ValueError)

    def test_grant_missing_user_raises(self, authz, mock_permission_repo, mock_user_repo):
        mock_user_repo.find_by_id.return_value = None

        with pytest.raises(UserNotFoundError):
            authz.grant(404, "project", 1, "read")
        mock_permission_repo.upsert.assert_not_called()

    def test_revoke_without_grant_returns_false(self, authz, mock_permission_repo, mock_audit):
        mock_permission_repo.find.return_value = None

        assert authz.revoke(7, "project", 1) is False
        mock_permission_repo.remove.assert_not_called()
        mock_audit.audit_log.assert_not_called()

    def test_revoke_existing(self, authz, mock_permission_repo, mock_audit):
        mock_permission_repo.find.return_value = grant_row(7, "project", 1, "admin")
        mock_permission_repo.remove.return_value = True

        assert authz.revoke(7, "project", 1, revoked_by=1) is True
        mock_permission_repo.remove.assert_called_once_with(7, "project", 1)
        assert "admin" in mock_audit.audit_log.call_args.args[0]

    def test_revoke_rejects_unknown_type(self, authz, mock_permission_repo):
        with pytest.raises(InvalidArgumentError):
            authz.revoke(7, "spaceship", 1)
        mock_permission_repo.find.assert_not_called()

    def test_works_without_audit_service(self, mock_permission_repo, mock_user_repo, mock_project_repo,
                                         mock_resource_repo, mock_registry):
        authz = AuthorizationService(mock_permission_repo, mock_user_repo, mock_project_repo,
                                     mock_resource_repo, mock_registry)
        mock_user_repo.find_by_id.return_value = make_user(7)

        authz.grant(7, "project", 1, "read")
        mock_permission_repo.upsert.assert_called_once()


class TestBatchOperations:
    def test_copy_counts_only_created_rows(self, authz, mock_permission_repo, mock_user_repo):
        # === Arrange ===
        mock_user_repo.find_by_id.side_effect = lambda user_id: make_user(user_id)
        mock_permission_repo.list_by_user.return_value = [
            grant_row(1, "project", 1, "read"),
            grant_row(1, "workspace", None, "write"),
            grant_row(1, "resource", 5, "admin"),
        ]
        # 시나리오: 대상 사용자가 resource:5 권한을 이미 가지고 있음
        mock_permission_repo.create_if_absent.side_effect = [True, True, False]

        # === Act ===
        copied = authz.copy_permissions(1, 2)

        # === Assert ===
        assert copied == 2
        mock_permission_repo.create_if_absent.assert_any_call(2, "workspace", None, "write")

    def test_copy_missing_target_raises(self, authz, mock_user_repo, mock_permission_repo):
        mock_user_repo.find_by_id.side_effect = lambda user_id: make_user(user_id) if user_id == 1 else None

        with pytest.raises(UserNotFoundError):
            authz.copy_permissions(1, 2)
        mock_permission_repo.create_if_absent.assert_not_called()

    def test_bulk_grant_skips_missing_user(self, authz, mock_user_repo, mock_permission_repo, mock_audit):
        """일부 사용자가 없어도 나머지는 부여되고 성공 건수만 반환되는지 테스트합니다."""
        # === Arrange ===
        mock_user_repo.find_by_id.side_effect = lambda user_id: None if user_id == 3 else make_user(user_id)

        # === Act ===
        granted = authz.bulk_grant([1, 2, 3, 4], "project", 9, "read", granted_by=1)

        # === Assert ===
        assert granted == 3
        assert mock_permission_repo.upsert.call_count == 3
        mock_audit.system_log.assert_called_once()
        assert mock_audit.audit_log.call_args.args[2] == "bulk_grant_permissions"

    def test_bulk_grant_validates_before_loop(self, authz, mock_user_repo):
        with pytest.raises(InvalidArgumentError):
            authz.bulk_grant([1, 2], "project", 9, "owner")
        mock_user_repo.find_by_id.assert_not_called()

    def test_bulk_revoke_counts_actual_removals(self, authz, mock_permission_repo):
        mock_permission_repo.find.side_effect = lambda u, t, r: grant_row(u, t, r, "read") if u != 2 else None
        mock_permission_repo.remove.return_value = True

        assert authz.bulk_revoke([1, 2, 3], "project", 9) == 2


class TestMaintenance:
    def test_cleanup_removes_orphans(self, authz, mock_permission_repo, mock_user_repo, mock_registry, mock_audit):
        # === Arrange ===
        mock_permission_repo.distinct_user_ids.return_value = [1, 2, 3]
        mock_user_repo.list_by_ids.return_value = [make_user(1), make_user(3)]
        mock_permission_repo.delete_by_user_ids.return_value = 4
        mock_permission_repo.distinct_resource_ids.side_effect = lambda t: {"project": ["1", "2"]}.get(t, [])
        mock_registry.find_missing.side_effect = lambda t, ids: {"2"} if t == "project" else set()
        mock_permission_repo.delete_by_resource_ids.side_effect = lambda t, ids: len(ids)

        # === Act ===
        counts = authz.cleanup_orphaned_permissions()

        # === Assert ===
        assert counts == {
            "deleted_user_permissions": 4,
            "deleted_project_permissions": 1,
            "deleted_workspace_permissions": 0,
            "deleted_resource_permissions": 0,
        }
        mock_permission_repo.delete_by_user_ids.assert_called_once_with([2])
        mock_permission_repo.delete_by_resource_ids.assert_any_call("project", ["2"])
        mock_audit.system_log.assert_called_once()

    def test_permission_matrix(self, authz, mock_permission_repo):
        mock_permission_repo.list_with_usernames.return_value = [
            ("alice", grant_row(2, "project", 1, "read")),
            ("alice", grant_row(2, "system", None, "admin")),
            ("bob", grant_row(3, "workspace", 4, "write")),
        ]

        assert authz.get_permission_matrix() == {
            "alice": {"project:1": "read", "system:": "admin"},
            "bob": {"workspace:4": "write"},
        }

    def test_list_resource_permissions_adds_names(self, authz, mock_permission_repo, mock_user_repo, mock_registry):
        mock_permission_repo.list_by_resource.return_value = [grant_row(2, "project", 1, "read")]
        mock_user_repo.list_by_ids.return_value = [models.User(id=2, username="alice")]
        mock_registry.display_name.return_value = "web-app"

        [entry] = authz.list_resource_permissions("project", 1)

        assert entry["username"] == "alice"
        assert entry["resource_name"] == "web-app"
        assert entry["resource_id"] == "1"
