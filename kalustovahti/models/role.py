"""
Role Models
Named roles and their per-page grants
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import relationship

from kalustovahti.models.base import BaseModel


class Role(BaseModel):
    __tablename__ = "roles"

    name = Column(String(50), nullable=False, unique=True, index=True)
    display_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_system_role = Column(Boolean, default=False, nullable=False)

    page_permissions = relationship(
        "RolePagePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Role(name='{self.name}', system={self.is_system_role})>"


class RolePagePermission(BaseModel):
    """Grant row; more than one row per (role, page) is tolerated and merged"""
    __tablename__ = "role_page_permissions"

    role_id = Column(Uuid(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    page_key = Column(String(50), nullable=False)
    can_view = Column(Boolean, default=False, nullable=False)
    can_edit = Column(Boolean, default=False, nullable=False)

    role = relationship("Role", back_populates="page_permissions", lazy="joined")

    __table_args__ = (
        Index("ix_role_page_permissions_role_page", "role_id", "page_key"),
    )

    def __repr__(self):
        return (
            f"<RolePagePermission(role_id='{self.role_id}', page_key='{self.page_key}', "
            f"view={self.can_view}, edit={self.can_edit})>"
        )
