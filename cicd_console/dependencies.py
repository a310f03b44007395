from contextlib import contextmanager
from typing import Any, Callable, Dict, Optional

from cicd_console.config import Settings
from cicd_console.repositories.sqlalchemy import (
    SqlalchemyPermissionRepository, SqlalchemyProjectRepository, SqlalchemyResourceRepository,
    SqlalchemyUserRepository, SqlalchemyWorkspaceRepository,
)
from cicd_console.services.audit_service import AuditService
from cicd_console.services.authorization_service import AuthorizationService
from cicd_console.services.identity_service import IdentityService, SessionStore
from cicd_console.services.resource_registry import build_resource_registry


class ServiceProvider:
    """
    요청 하나에 필요한 DB 세션, 리포지토리, 서비스를 조립합니다.

    세션 저장소와 감사 로그 서비스는 프로세스 전체에서 공유하고,
    DB 세션과 리포지토리, 서비스는 요청마다 새로 만듭니다.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: Callable,
        session_store: Optional[SessionStore] = None,
        audit_service: Optional[AuditService] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.session_store = session_store or SessionStore()
        self.audit_service = audit_service or AuditService(session_factory, max_workers=settings.audit_workers)

    @contextmanager
    def scope(self):
        """서비스 dict를 제공하고, 블록이 끝나면 DB 세션을 닫습니다."""
        db_session = self.session_factory()
        try:
            yield self.build_services(db_session)
        finally:
            db_session.close()

    def build_services(self, db_session) -> Dict[str, Any]:
        # 1. 의존성 생성 (Repositories -> Services)
        user_repo = SqlalchemyUserRepository(db_session)
        project_repo = SqlalchemyProjectRepository(db_session)
        workspace_repo = SqlalchemyWorkspaceRepository(db_session)
        resource_repo = SqlalchemyResourceRepository(db_session)
        permission_repo = SqlalchemyPermissionRepository(db_session)

        registry = build_resource_registry(project_repo, workspace_repo, resource_repo)
        identity_service = IdentityService(user_repo, self.session_store, self.settings.session_ttl_minutes)
        authorization_service = AuthorizationService(
            permission_repo, user_repo, project_repo, resource_repo, registry, self.audit_service
        )

        return {
            'identity': identity_service,
            'authorization': authorization_service,
            'audit': self.audit_service,
            'settings': self.settings,
        }
