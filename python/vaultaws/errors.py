"""
vaultaws/errors.py

Exceptions raised while describing AWS credential requests or talking to Vault.

The configuration errors derive from Exception rather than ValueError, so they
pass through pydantic validators unchanged instead of being folded into a
pydantic ValidationError.
"""

from __future__ import annotations

from typing import Any, Optional


class CredentialConfigError(Exception):
    """Base class for invalid AWS credential request configuration."""


class InvalidArgumentError(CredentialConfigError):
    """A required string field is missing or empty.

    Attributes:
        field (str): Name of the offending field.
    """

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"'{field}' must not be empty")
        self.field = field


class UnsupportedCredentialTypeError(CredentialConfigError):
    """The credential type is not one of iam_user, assumed_role, federation_token.

    Attributes:
        value (Any): The rejected credential type value.
    """

    def __init__(self, value: Any) -> None:
        super().__init__(
            f"Unsupported credential-type {value!r}; expected one of "
            "'iam_user', 'assumed_role' or 'federation_token'"
        )
        self.value = value


class CredentialValidationError(CredentialConfigError):
    """Fields are individually valid but inconsistent with each other."""


class VaultRequestError(RuntimeError):
    """Vault answered with a non-success HTTP status.

    Attributes:
        status (Optional[int]): HTTP status code, if a response was received.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status
