# vaultaws/models/vault_settings.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from vaultaws.models.aws_credentials import (
    DEFAULT_ACCESS_KEY_PROPERTY,
    DEFAULT_SECRET_KEY_PROPERTY,
    DEFAULT_SESSION_TOKEN_KEY_PROPERTY,
    CredentialDescriptor,
)


class VaultAwsSettings(BaseSettings):
    """
    Pydantic settings selecting and shaping the AWS credential request.
    Fields map to environment variables prefixed with `VAULT_AWS_`, for example
    `VAULT_AWS_ROLE`, `VAULT_AWS_CREDENTIAL_TYPE`.

    credential_type is kept as the raw configured string; it is parsed (and
    rejected if unknown) when the descriptor is built.
    """

    backend: str = "aws"
    role: str = ""
    credential_type: str = "iam_user"
    access_key_property: str = DEFAULT_ACCESS_KEY_PROPERTY
    secret_key_property: str = DEFAULT_SECRET_KEY_PROPERTY
    session_token_key_property: Optional[str] = DEFAULT_SESSION_TOKEN_KEY_PROPERTY

    # VAULT_AWS_ROLE="deploy" populates role.
    model_config = SettingsConfigDict(env_prefix="VAULT_AWS_", extra="ignore")

    def to_descriptor(self) -> CredentialDescriptor:
        """Validate these settings into a CredentialDescriptor.

        Raises:
            InvalidArgumentError, UnsupportedCredentialTypeError,
            CredentialValidationError: On invalid configuration.
        """
        return CredentialDescriptor.model_validate(self.model_dump())
