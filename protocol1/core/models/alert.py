"""
Alert model raised by the Monitor for critical violations and anomalies.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .rule import Severity


class Alert(BaseModel):
    """
    A persisted governance alert.

    Attributes:
        alert_id: Auto-increment primary key (None until persisted)
        severity: CRITICAL for critical violations, HIGH for anomalies
        title: Short headline
        message: Human-readable description
        alert_data: Structured payload (actor, action, violations, ...)
        is_acknowledged: Set by an operator outside the enforcement core
        created_at: When the alert was raised
    """

    alert_id: int | None = None
    severity: Severity
    title: str = Field(..., min_length=1)
    message: str = ""
    alert_data: dict[str, Any] = Field(default_factory=dict)
    is_acknowledged: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        json_schema_extra = {
            "example": {
                "severity": "HIGH",
                "title": "High Volume of Protocol-1 Violations",
                "message": "11 violations in last 5 minutes from issuer",
                "alert_data": {"actor_type": "issuer", "anomaly_detected": True},
                "is_acknowledged": False,
            }
        }
