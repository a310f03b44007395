from .sqlalchemy_user_repository import SqlalchemyUserRepository
from .sqlalchemy_project_repository import SqlalchemyProjectRepository
from .sqlalchemy_workspace_repository import SqlalchemyWorkspaceRepository
from .sqlalchemy_resource_repository import SqlalchemyResourceRepository
from .sqlalchemy_permission_repository import SqlalchemyPermissionRepository
from .sqlalchemy_audit_log_repository import SqlalchemyAuditLogRepository

__all__ = [
    "SqlalchemyUserRepository", "SqlalchemyProjectRepository", "SqlalchemyWorkspaceRepository",
    "SqlalchemyResourceRepository", "SqlalchemyPermissionRepository", "SqlalchemyAuditLogRepository",
]
