from .user import IUserRepository
from .project import IProjectRepository
from .workspace import IWorkspaceRepository
from .resource import IResourceRepository
from .permission import IPermissionRepository, ResourceId
from .audit_log import IAuditLogRepository

__all__ = [
    "IUserRepository", "IProjectRepository", "IWorkspaceRepository",
    "IResourceRepository", "IPermissionRepository", "IAuditLogRepository", "ResourceId",
]
