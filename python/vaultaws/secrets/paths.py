"""
vaultaws/secrets/paths.py

Request paths, display names and template variables for AWS secrets engine roles.

  iam_user                       -> <backend>/creds/<role>
  assumed_role, federation_token -> <backend>/sts/<role>
"""

from __future__ import annotations

from typing import Dict

from vaultaws.errors import InvalidArgumentError
from vaultaws.models.aws_credentials import AwsCredentialType

_ENDPOINTS: Dict[AwsCredentialType, str] = {
    AwsCredentialType.iam_user: "creds",
    AwsCredentialType.assumed_role: "sts",
    AwsCredentialType.federation_token: "sts",
}


def _require(field: str, value: str) -> str:
    if not value or not value.strip():
        raise InvalidArgumentError(field)
    return value


def build_key(role: str, credential_type: AwsCredentialType) -> str:
    """Return the path below the backend mount, e.g. 'sts/deploy'."""
    _require("role", role)
    return f"{_ENDPOINTS[AwsCredentialType.parse(credential_type)]}/{role}"


def build_path(backend: str, role: str, credential_type: AwsCredentialType) -> str:
    """Return the full request path, e.g. 'aws/creds/readonly'.

    Raises:
        InvalidArgumentError: If backend or role is empty.
        UnsupportedCredentialTypeError: If credential_type is unknown.
    """
    _require("backend", backend)
    return f"{backend}/{build_key(role, credential_type)}"


def build_name(backend: str, role: str) -> str:
    """Human-readable request name, e.g. 'aws with Role readonly'."""
    return f"{_require('backend', backend)} with Role {_require('role', role)}"


def build_variables(
    backend: str, role: str, credential_type: AwsCredentialType
) -> Dict[str, str]:
    """Variables for templated path interpolation: 'backend' and 'key'."""
    return {
        "backend": _require("backend", backend),
        "key": build_key(role, credential_type),
    }
