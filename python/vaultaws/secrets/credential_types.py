"""
vaultaws/secrets/credential_types.py

The closed set of supported AWS credential types and the lease mode each requires.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Union

from vaultaws.models.aws_credentials import (
    AwsCredentialType,
    CredentialDescriptor,
    LeaseMode,
)

LEASE_MODES: Dict[AwsCredentialType, LeaseMode] = {
    AwsCredentialType.iam_user: LeaseMode.NONE,
    AwsCredentialType.assumed_role: LeaseMode.RENEW,
    AwsCredentialType.federation_token: LeaseMode.ROTATE,
}


def parse_credential_type(value: Any) -> AwsCredentialType:
    """Parse a configured credential-type value.

    Raises:
        UnsupportedCredentialTypeError: If value is not a known credential type.
    """
    return AwsCredentialType.parse(value)


def required_lease_mode(credential_type: Any) -> LeaseMode:
    """Lease mode for a credential type: NONE, RENEW or ROTATE."""
    return LEASE_MODES[parse_credential_type(credential_type)]


def is_leasing(credential_type: Any) -> bool:
    """True for credential types whose secrets are renewed or rotated."""
    return required_lease_mode(credential_type) is not LeaseMode.NONE


def validate(
    descriptor: Union[CredentialDescriptor, Mapping[str, Any]]
) -> CredentialDescriptor:
    """
    Fully validate a descriptor, or build one from property-source data.

    Descriptors are re-validated field by field, so instances created with
    `CredentialDescriptor.model_construct` (which skips validation) are checked too.

    Returns:
        CredentialDescriptor: The validated descriptor.

    Raises:
        UnsupportedCredentialTypeError: Unknown credential type.
        InvalidArgumentError: A required field is empty.
        CredentialValidationError: Fields are inconsistent for the credential type.
    """
    if isinstance(descriptor, CredentialDescriptor):
        validated = CredentialDescriptor.model_validate(dict(descriptor))
    else:
        validated = CredentialDescriptor.from_properties(descriptor)
    return validated
