from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field
from pydantic.functional_validators import model_validator


class VaultSettings(BaseModel):
    """Connection and authentication settings for AsyncVaultClient."""

    vault_addr: str = Field(default="http://vault.vault.svc.cluster.local:8200")
    vault_role_name: Optional[str] = None
    token_path: str = "/var/run/secrets/kubernetes.io/serviceaccount/token"
    verify_ssl: bool = True
    renew_threshold_seconds: float = 60.0
    check_interval_seconds: float = 30.0
    direct_vault_token: Optional[str] = None
    read_retries: int = Field(default=3, ge=1)
    read_retry_delay_seconds: float = Field(default=1.0, ge=0.0)

    @model_validator(mode="after")
    def check_exclusivity(self) -> VaultSettings:
        """
        Ensure vault_role_name and direct_vault_token are not both set.
        """
        if self.vault_role_name and self.direct_vault_token:
            raise ValueError(
                "vault_role_name and direct_vault_token are mutually exclusive."
            )
        return self
