"""
ValidationContext model: the normalized description of one attempted action.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ActorType(str, Enum):
    """Category of the entity attempting an action."""

    ISSUER = "issuer"
    INVESTOR = "investor"
    ADMIN_JUDGMENT = "admin_judgment"
    ADMIN_OVERRIDE = "admin_override"
    SYSTEM_ENFORCEMENT = "system_enforcement"
    AUTOMATED_PLATFORM = "automated_platform"
    PUBLIC = "public"

    @property
    def family(self) -> str:
        """Catalog tag shared by related actor types ("admin", "system", ...)."""
        if self in (ActorType.ADMIN_JUDGMENT, ActorType.ADMIN_OVERRIDE):
            return "admin"
        if self in (ActorType.SYSTEM_ENFORCEMENT, ActorType.AUTOMATED_PLATFORM):
            return "system"
        return self.value


def _as_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class ResourceRefs(BaseModel):
    """References to the company and record an action targets."""

    company_id: str | None = None
    target_model: str | None = None
    target_id: str | None = None

    class Config:
        frozen = True

    @field_validator("company_id", "target_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        """Accept integer primary keys."""
        return _as_str(v)


class RequestMetadata(BaseModel):
    """Snapshot of the originating request, stored with each violation."""

    ip_address: str | None = None
    user_agent: str | None = None
    url: str | None = None
    method: str | None = None

    class Config:
        frozen = True


class ValidationContext(BaseModel):
    """
    Per-request input to the Validator (immutable).

    Attributes:
        actor_type: Who is acting
        action: Action identifier ("edit_disclosure", "create_investment", ...)
        resource_refs: Company and target record references
        actor_id: Acting user, if known
        payload: Request data used by required-field checks
        request_metadata: Request snapshot for the audit trail
    """

    actor_type: ActorType
    action: str = Field(..., min_length=1)
    resource_refs: ResourceRefs = Field(default_factory=ResourceRefs)
    actor_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    request_metadata: RequestMetadata = Field(default_factory=RequestMetadata)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "actor_type": "issuer",
                "action": "edit_disclosure",
                "resource_refs": {
                    "company_id": "42",
                    "target_model": "disclosure",
                    "target_id": "1001",
                },
                "actor_id": "7",
                "payload": {"actor_type": "issuer", "title": "Q3 update"},
            }
        }

    @field_validator("actor_id", mode="before")
    @classmethod
    def coerce_actor_id(cls, v):
        """Accept integer user ids."""
        return _as_str(v)

    @property
    def company_id(self) -> str | None:
        return self.resource_refs.company_id
