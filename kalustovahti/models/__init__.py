"""
SQLAlchemy Models Package
"""

from kalustovahti.models.audit_log import AuditLog
from kalustovahti.models.role import Role, RolePagePermission
from kalustovahti.models.user import User, UserRole

__all__ = [
    "AuditLog",
    "Role",
    "RolePagePermission",
    "User",
    "UserRole",
]
