"""
vaultaws/models/validator.py

Checks loosely typed data, such as decoded Vault response bodies or stored
credential metadata, against the pydantic models and typing constructs used here.
"""

from typing import Any, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


def validate_type(obj: Any, expected_type: Type[T]) -> T:
    """
    Coerce `obj` into `expected_type`, for example `Dict[str, Any]` for a Vault
    response body or the `CredentialMetadata` union for a metadata dump.

    Raises:
        ValueError: Carrying pydantic's error report when `obj` does not fit.
    """
    try:
        return TypeAdapter(expected_type).validate_python(obj)
    except ValidationError as exc:
        raise ValueError(f"Expected {expected_type}, got invalid data: {exc}") from exc
