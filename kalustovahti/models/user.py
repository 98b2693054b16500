"""
User Model
Accounts and their role memberships
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from kalustovahti.models.base import BaseModel


class User(BaseModel):
    """Authenticated principal"""
    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(200), nullable=False)
    hashed_password = Column(String(128), nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    role_memberships = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<User(email='{self.email}', full_name='{self.full_name}')>"

    @property
    def role_names(self) -> list[str]:
        return sorted({membership.role for membership in self.role_memberships or []})


class UserRole(BaseModel):
    """Assignment of one role name to one user"""
    __tablename__ = "user_roles"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(50), nullable=False)

    user = relationship("User", back_populates="role_memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        Index("ix_user_roles_user_id", "user_id"),
    )

    def __repr__(self):
        return f"<UserRole(user_id='{self.user_id}', role='{self.role}')>"
