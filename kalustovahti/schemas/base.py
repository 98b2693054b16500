"""
Base Pydantic Schemas
Common schemas and base classes for request/response models
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseSchema(BaseModel):
    """Base schema with common configuration"""
    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )


class SuccessResponse(BaseModel):
    """Success response schema"""
    message: str = Field(..., description="Success message")
    data: Optional[Dict[str, Any]] = Field(None, description="Additional data")
    timestamp: datetime = Field(default_factory=_utcnow, description="Response timestamp")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthCheck(BaseModel):
    status: HealthStatus = Field(..., description="Overall health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    checks: Dict[str, Any] = Field(default_factory=dict, description="Individual health checks")


def validate_email(v: Any) -> str:
    """Validate email format and normalize to lower case"""
    if not isinstance(v, str):
        raise ValueError("Email must be a string")
    v = v.strip().lower()
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email format")
    return v


def validate_non_empty_string(v: Any) -> str:
    if not isinstance(v, str):
        raise ValueError("Must be a string")
    if not v.strip():
        raise ValueError("String cannot be empty")
    return v.strip()
