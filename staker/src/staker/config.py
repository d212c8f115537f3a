"""
Configuration for the vault staker.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vaultcore.constants import BTC_DUST_SAT
from vaultcore.models import AddressFallback, NetworkType, get_network_params


class VaultConfig(BaseModel):
    """
    Network, tag and version a vault orchestrator is bound to.

    Built once by the caller and shared read-only by every build.
    """

    model_config = ConfigDict(frozen=True)

    network: NetworkType = NetworkType.MAINNET
    tag: str = Field(..., min_length=1, description="Protocol tag embedded in staking outputs")
    service_tag: str = Field(
        ..., min_length=1, description="Service tag embedded in staking outputs"
    )
    version: int = Field(default=0, ge=0, le=255, description="Protocol version byte")
    dust_threshold: int = Field(
        default=BTC_DUST_SAT, ge=0, description="Change at or below this is not created"
    )
    address_fallback: AddressFallback = Field(
        default=AddressFallback.P2WPKH,
        description="What to do with addresses that are neither base58 nor bech32",
    )

    @field_validator("tag", "service_tag")
    @classmethod
    def validate_ascii(cls, v: str) -> str:
        if not v.isascii():
            raise ValueError("Tags must be ASCII")
        return v

    @property
    def network_kind(self) -> int:
        return get_network_params(self.network).kind

    @property
    def tag_bytes(self) -> bytes:
        return self.tag.encode("ascii")

    @property
    def service_tag_bytes(self) -> bytes:
        return self.service_tag.encode("ascii")


class StakerSettings(BaseSettings):
    """Runtime settings, read from ``VAULT_*`` environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="VAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    network: NetworkType = NetworkType.MAINNET
    tag: str = "SCALAR"
    service_tag: str = "light"
    version: int = Field(default=0, ge=0, le=255)

    rpc_url: str = "http://127.0.0.1:8332"
    rpc_user: str = ""
    rpc_password: str = ""
    mempool_api_url: str | None = None

    fee_rate: int = Field(default=1, ge=1, description="Default fee rate in sat/vB")
    rbf: bool = True
    dust_threshold: int = Field(default=BTC_DUST_SAT, ge=0)
    address_fallback: AddressFallback = AddressFallback.P2WPKH

    log_level: str = "INFO"

    def to_vault_config(self) -> VaultConfig:
        return VaultConfig(
            network=self.network,
            tag=self.tag,
            service_tag=self.service_tag,
            version=self.version,
            dust_threshold=self.dust_threshold,
            address_fallback=self.address_fallback,
        )


def get_settings() -> StakerSettings:
    return StakerSettings()
