"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any

import tomllib
from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .constants import (
    CPMM_CONFIG_INDEX_LIMIT,
    CPMM_PROGRAM_IDS,
    DEFAULT_JUPITER_API_URL,
    DEFAULT_PROGRAM_ID,
    DEFAULT_RPC_URL,
    MAX_QUOTE_TTL_SECONDS,
    MIN_QUOTE_TTL_SECONDS,
    USDC_MINT,
)

load_dotenv()

SECRET_FIELDS = {"private_key"}


class Commitment(str, Enum):
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


class PoolSettings(BaseModel):
    """Configuration options for direct-pool discovery."""

    require_direct_pool: bool = False
    venues: list[str] = Field(default_factory=lambda: list(CPMM_PROGRAM_IDS))
    config_index_limit: int = Field(default=CPMM_CONFIG_INDEX_LIMIT, gt=0, le=65_536)
    # asset mint -> known pool address against the stablecoin
    known_pools: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @field_validator("venues")
    @classmethod
    def venues_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one pool venue must be configured")
        return v


class KeeperSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with VAULT_KEEPER_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- global toggles ---
    dry_run: bool = True
    assume_yes: bool = False
    deposit_strict: bool = False
    allow_unpriced_assets: bool = False

    # --- ledger ---
    rpc_url: str = DEFAULT_RPC_URL
    program_id: str = DEFAULT_PROGRAM_ID
    stablecoin_mint: str = USDC_MINT
    commitment: Commitment = Commitment.CONFIRMED
    confirm_timeout_seconds: float = Field(default=60.0, gt=0)
    confirm_poll_interval: float = Field(default=1.0, gt=0)

    # --- signing ---
    keypair_path: Path | None = None
    private_key: SecretStr | None = None

    # --- external services ---
    jupiter_api_url: str = DEFAULT_JUPITER_API_URL
    http_timeout: float = Field(default=10.0, gt=0)
    quote_ttl_seconds: float = Field(
        default=8.0,
        ge=MIN_QUOTE_TTL_SECONDS,
        le=MAX_QUOTE_TTL_SECONDS,
        description="Seconds a swap quote stays usable before it must be re-fetched.",
    )
    price_cache_ttl_seconds: float = Field(default=10.0, ge=0)

    # --- checks and retries ---
    pre_check_retries: int = 2
    pre_check_timeout: float = 5.0
    global_timeout_seconds: float | None = 900.0

    # --- logging ---
    log_level: str = "INFO"

    # --- pools (from config file only) ---
    pools: PoolSettings = Field(default_factory=PoolSettings)

    model_config = SettingsConfigDict(
        env_prefix="VAULT_KEEPER_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator("private_key", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("program_id", "stablecoin_mint")
    @classmethod
    def validate_pubkey(cls, v: str) -> str:
        """Reject values that are not base58 public keys."""
        try:
            Pubkey.from_string(v)
        except ValueError as e:
            raise ValueError(f"invalid public key: {v}") from e
        return v

    @model_validator(mode="after")
    def validate_signer_source(self) -> "KeeperSettings":
        """Only one signer source may be configured."""
        if self.keypair_path is not None and self.private_key is not None:
            raise ValueError("configure either keypair_path or private_key, not both")
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("VAULT_KEEPER_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    # Try default locations
                    local_config = Path("vault-keeper.toml")
                    user_config = (
                        Path.home() / ".config" / "vault-keeper" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [vault_keeper]
                body = data.get("vault_keeper", data)
                if not isinstance(body, dict):
                    return {}

                for key in SECRET_FIELDS:
                    if key in body:
                        raise ValueError(
                            f"Security violation: '{key}' found in TOML config file. "
                            f"Secrets must only be provided via environment variables or CLI flags."
                        )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,  # optional secrets dir
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a JSON-ready dict with secrets redacted."""
        data = self.model_dump(mode="json")
        if self.private_key:
            data["private_key"] = "***redacted***"
        return data

    @property
    def program_pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.program_id)

    @property
    def stablecoin_pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.stablecoin_mint)

    def load_keypair(self) -> Keypair:
        """Load the signing keypair.

        Accepts a base58 secret (``private_key``) or a JSON byte-array keypair
        file (``keypair_path``), the format written by ``solana-keygen``.

        Raises:
            ValueError: If no signer is configured or the key cannot be parsed
        """
        if self.private_key is not None:
            secret = self.private_key.get_secret_value().strip()
            if secret.startswith("["):
                return Keypair.from_bytes(bytes(json.loads(secret)))
            return Keypair.from_base58_string(secret)

        if self.keypair_path is not None:
            raw = json.loads(self.keypair_path.expanduser().read_text())
            if not isinstance(raw, list):
                raise ValueError(f"keypair file {self.keypair_path} is not a byte array")
            return Keypair.from_bytes(bytes(raw))

        raise ValueError(
            "a signer is required: set VAULT_KEEPER_PRIVATE_KEY or pass --keypair"
        )
