"""
Member profile returned by the Memberful member API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _APIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Plan(_APIModel):
    id: str
    name: str


class Subscription(_APIModel):
    active: bool
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")
    plan: Plan


class MemberProfile(_APIModel):
    """The ``currentMember`` object of the member API response."""

    id: str
    email: str
    full_name: str = Field(..., alias="fullName")
    subscriptions: List[Subscription] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """Serialize using the provider's field names."""
        return self.model_dump(mode="json", by_alias=True)


__all__ = ["MemberProfile", "Plan", "Subscription"]
