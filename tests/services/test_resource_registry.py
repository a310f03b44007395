# tests/services/test_resource_registry.py
import pytest
from unittest.mock import MagicMock

from cicd_console.services.resource_registry import ResourceRegistry, build_resource_registry, numeric_ids
from cicd_console.repositories.interfaces import IProjectRepository, IResourceRepository, IWorkspaceRepository
from cicd_console.database import models


@pytest.fixture
def registry():
    project_repo = MagicMock(spec=IProjectRepository)
    project_repo.find_by_id.side_effect = lambda i: models.Project(id=i, name="web-app") if i == 1 else None
    project_repo.list_by_ids.side_effect = lambda ids: [models.Project(id=i, name="x") for i in ids if i == 1]
    workspace_repo = MagicMock(spec=IWorkspaceRepository)
    workspace_repo.list_by_ids.return_value = []
    resource_repo = MagicMock(spec=IResourceRepository)
    return build_resource_registry(project_repo, workspace_repo, resource_repo)


def test_display_name_uses_lookup(registry):
    assert registry.display_name("project", 1) == "web-app"


def test_display_name_falls_back(registry):
    assert registry.display_name("project", 2) == "project:2"
    assert registry.display_name("script", 9) == "script:9"
    assert registry.display_name("workspace", None) == "workspace:"


def test_system_feature_names(registry):
    assert registry.display_name("system", "log_view") == "Log viewer"


def test_find_missing(registry):
    """존재하지 않는 ID와 숫자가 아닌 ID가 누락으로 판정되는지 테스트합니다."""
    assert registry.find_missing("project", ["1", "2", "abc"]) == {"2", "abc"}


def test_unregistered_type_never_missing():
    registry = ResourceRegistry()
    assert registry.find_missing("script", ["1"]) == set()


def test_numeric_ids():
    assert numeric_ids(["3", "x", "10", ""]) == [3, 10]
