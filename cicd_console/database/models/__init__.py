from .user import User
from .workspace import Workspace
from .project import Project
from .resource import Resource
from .permission import Permission, RESOURCE_TYPES, PERMISSION_TYPES, TYPE_WIDE
from .audit_log import AuditLog, LOG_TYPES, LOG_LEVELS

__all__ = [
    "User", "Workspace", "Project", "Resource", "Permission", "AuditLog",
    "RESOURCE_TYPES", "PERMISSION_TYPES", "TYPE_WIDE", "LOG_TYPES", "LOG_LEVELS",
]
