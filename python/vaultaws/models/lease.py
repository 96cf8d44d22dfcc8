"""
vaultaws/models/lease.py

Pydantic models for leased secrets and their lifecycle events:
  - RequestedSecret (the handle a lease manager hands out per registration)
  - Lease / LeasedSecret
  - LeaseEventKind (Enum) / LeaseEvent
  - RebindAwsStsEvent (the notification published to application listeners)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from vaultaws.models.aws_credentials import AwsCredentialType, LeaseMode


class RequestedSecret(BaseModel):
    """
    A secret registered with a lease manager.

    Events are matched against a request by identity; `request_id` keeps two
    registrations of the same path distinguishable.
    """

    path: str
    mode: LeaseMode
    request_id: str = Field(default_factory=lambda: uuid4().hex)

    class Config:
        frozen = True


class Lease(BaseModel):
    """
    Lease information attached to a Vault response.

    Attributes:
        lease_id (str): Empty when the secret is not leased.
        lease_duration (float): Seconds until the lease expires.
        renewable (bool): Whether Vault allows renewing this lease.
    """

    lease_id: str = ""
    lease_duration: float = 0.0
    renewable: bool = False

    class Config:
        frozen = True

    @property
    def is_leased(self) -> bool:
        return bool(self.lease_id)


class LeasedSecret(BaseModel):
    """Raw secret data as returned by Vault, plus its lease."""

    lease: Lease = Field(default_factory=Lease)
    data: Dict[str, Any] = Field(default_factory=dict)


class LeaseEventKind(str, Enum):
    CREATED = "created"
    RENEWED = "renewed"
    ROTATED = "rotated"
    ERROR = "error"
    REVOKED = "revoked"

    @property
    def is_creation(self) -> bool:
        """True when the event means freshly issued credentials."""
        return self in (LeaseEventKind.CREATED, LeaseEventKind.ROTATED)


class LeaseEvent(BaseModel):
    source: RequestedSecret
    kind: LeaseEventKind
    lease: Optional[Lease] = None
    error: Optional[str] = None

    class Config:
        frozen = True


class RebindAwsStsEvent(BaseModel):
    """
    Published when Vault issued new STS credentials for a registered request,
    signalling that consumers should rebind to the new credential properties.
    """

    request: RequestedSecret
    name: str
    path: str
    credential_type: AwsCredentialType

    class Config:
        frozen = True
