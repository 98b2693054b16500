"""
Audit Log Model
Trail of privileged admin actions
"""

from sqlalchemy import JSON, Column, String, Text, Uuid

from kalustovahti.models.base import BaseModel


class AuditLog(BaseModel):
    __tablename__ = "audit_logs"

    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    table_name = Column(String(100), nullable=False)
    record_id = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    old_data = Column(JSON, nullable=True)
    new_data = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<AuditLog(action='{self.action}', table='{self.table_name}', record='{self.record_id}')>"
