"""
vaultaws/models/aws_credentials.py

Pydantic models (and Enums) describing AWS secrets engine credential requests:
  - AwsCredentialType (Enum)
  - LeaseMode (Enum)
  - CredentialDescriptor
  - IamUserMetadata / AssumedRoleMetadata / FederationTokenMetadata
  - CredentialMetadata (discriminated union of the three)
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Literal,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from pydantic import (
    BaseModel,
    Field,
    ValidationInfo,
    field_serializer,
    field_validator,
    model_validator,
)
from typing_extensions import Annotated

from vaultaws.errors import (
    CredentialValidationError,
    InvalidArgumentError,
    UnsupportedCredentialTypeError,
)

if TYPE_CHECKING:
    from vaultaws.models.lease import RequestedSecret
    from vaultaws.secrets.interfaces import LeaseManager
    from vaultaws.secrets.lease_bridge import LeaseRenewalBridge


DEFAULT_ACCESS_KEY_PROPERTY = "cloud.aws.credentials.accessKey"
DEFAULT_SECRET_KEY_PROPERTY = "cloud.aws.credentials.secretKey"
DEFAULT_SESSION_TOKEN_KEY_PROPERTY = "cloud.aws.credentials.sessionToken"


class AwsCredentialType(str, Enum):
    """
    Credential types understood by the Vault AWS secrets engine.
    """

    iam_user = "iam_user"
    assumed_role = "assumed_role"
    federation_token = "federation_token"

    @classmethod
    def parse(cls, value: Any) -> AwsCredentialType:
        """Parse a configuration value (case-insensitive) into a credential type.

        Raises:
            UnsupportedCredentialTypeError: If value names no known type.
        """
        if isinstance(value, cls):
            return value
        normalized = value.strip().lower() if isinstance(value, str) else None
        match = next((member for member in cls if member.value == normalized), None)
        if match is None:
            raise UnsupportedCredentialTypeError(value)
        return match


class LeaseMode(str, Enum):
    """
    How a lease manager keeps a secret alive.
    """

    NONE = "none"
    RENEW = "renew"
    ROTATE = "rotate"


class CredentialDescriptor(BaseModel):
    """
    One AWS credential request: where to read it and how to expose its keys.

    Attributes:
        backend (str): Mount path of the AWS secrets engine.
        role (str): Vault role to issue credentials for.
        credential_type (AwsCredentialType): iam_user, assumed_role or federation_token.
        access_key_property (str): Property name receiving 'access_key'.
        secret_key_property (str): Property name receiving 'secret_key'.
        session_token_key_property (Optional[str]): Property name receiving
            'security_token'. Only used for the STS credential types.
    """

    backend: str = Field(default="aws", validate_default=True)
    role: str = Field(default="", validate_default=True)
    credential_type: AwsCredentialType = AwsCredentialType.iam_user
    access_key_property: str = DEFAULT_ACCESS_KEY_PROPERTY
    secret_key_property: str = DEFAULT_SECRET_KEY_PROPERTY
    session_token_key_property: Optional[str] = DEFAULT_SESSION_TOKEN_KEY_PROPERTY

    class Config:
        frozen = True

    @field_validator("credential_type", mode="before")
    @classmethod
    def _parse_credential_type(cls, value: Any) -> AwsCredentialType:
        return AwsCredentialType.parse(value)

    @field_validator("backend", "role", "access_key_property", "secret_key_property")
    @classmethod
    def _require_non_empty(cls, value: str, info: ValidationInfo) -> str:
        if not value.strip():
            raise InvalidArgumentError(str(info.field_name))
        return value

    @model_validator(mode="after")
    def _check_session_token_property(self) -> CredentialDescriptor:
        """
        The STS credential types return a security token, so they need a
        property name to expose it under.
        """
        if self.credential_type is AwsCredentialType.iam_user:
            return self
        if self.session_token_key_property is None:
            raise CredentialValidationError(
                f"credential-type '{self.credential_type.value}' requires "
                "session-token-key-property to be set"
            )
        if not self.session_token_key_property.strip():
            raise InvalidArgumentError("session_token_key_property")
        return self

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any]) -> CredentialDescriptor:
        """Build a descriptor from property-source style keys.

        Accepts both 'credential-type' and 'credential_type' spellings; unknown
        keys are ignored.
        """
        return cls.model_validate(
            {key.replace("-", "_"): value for key, value in properties.items()}
        )


def _discard(event: Any) -> None:
    return None


class _CredentialMetadataBase(BaseModel):
    """Fields shared by every credential metadata variant."""

    name: str
    path: str
    key_transformer: Tuple[Tuple[str, str], ...]
    variables: Mapping[str, str]

    class Config:
        frozen = True

    @field_validator("variables")
    @classmethod
    def _freeze_variables(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("variables")
    def _dump_variables(self, value: Mapping[str, str]) -> Dict[str, str]:
        return dict(value)


class IamUserMetadata(_CredentialMetadataBase):
    """Static IAM user credentials read from '<backend>/creds/<role>'."""

    credential_type: Literal[AwsCredentialType.iam_user] = AwsCredentialType.iam_user
    lease_mode: Literal[LeaseMode.NONE] = LeaseMode.NONE


class _LeasingMetadataBase(_CredentialMetadataBase):
    """STS credentials: leased, and rebound whenever Vault issues new ones."""

    publish: Callable[[Any], None] = Field(default=_discard, exclude=True, repr=False)

    def after_registration(
        self, request: RequestedSecret, manager: LeaseManager
    ) -> LeaseRenewalBridge:
        """Subscribe a renewal bridge for `request` on the lease manager."""
        from vaultaws.secrets.lease_bridge import LeaseRenewalBridge

        return LeaseRenewalBridge(request, self, manager).attach()


class AssumedRoleMetadata(_LeasingMetadataBase):
    credential_type: Literal[AwsCredentialType.assumed_role] = (
        AwsCredentialType.assumed_role
    )
    lease_mode: Literal[LeaseMode.RENEW] = LeaseMode.RENEW


class FederationTokenMetadata(_LeasingMetadataBase):
    credential_type: Literal[AwsCredentialType.federation_token] = (
        AwsCredentialType.federation_token
    )
    lease_mode: Literal[LeaseMode.ROTATE] = LeaseMode.ROTATE


CredentialMetadata = Annotated[
    Union[IamUserMetadata, AssumedRoleMetadata, FederationTokenMetadata],
    Field(discriminator="credential_type"),
]

LeasingCredentialMetadata = Union[AssumedRoleMetadata, FederationTokenMetadata]

__all__ = [
    "DEFAULT_ACCESS_KEY_PROPERTY",
    "DEFAULT_SECRET_KEY_PROPERTY",
    "DEFAULT_SESSION_TOKEN_KEY_PROPERTY",
    "AwsCredentialType",
    "LeaseMode",
    "CredentialDescriptor",
    "IamUserMetadata",
    "AssumedRoleMetadata",
    "FederationTokenMetadata",
    "CredentialMetadata",
    "LeasingCredentialMetadata",
]
