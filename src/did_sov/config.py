"""Driver configuration."""

import logging
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "uniresolver_driver_did_sov_"


class DriverConfig(BaseSettings):
    """did:sov driver configuration.

    Values are read from the environment (and an optional `.env` file) using
    the `uniresolver_driver_did_sov_` variables only, or passed by keyword
    using the field names.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    lib_indy_path: str | None = Field(
        None, validation_alias=ENV_PREFIX + "libIndyPath"
    )
    pool_config_name: str = Field(
        "default", validation_alias=ENV_PREFIX + "poolConfigName"
    )
    pool_genesis_txn: str = Field(
        "genesis.txn", validation_alias=ENV_PREFIX + "poolGenesisTxn"
    )
    wallet_name: str = Field("default", validation_alias=ENV_PREFIX + "walletName")
    wallet_key: str = Field("default", validation_alias=ENV_PREFIX + "walletKey")
    wallet_key_method: str = Field(
        "kdf:argon2i", validation_alias=ENV_PREFIX + "walletKeyMethod"
    )
    storage_path: Path | None = Field(
        None, validation_alias=ENV_PREFIX + "storagePath"
    )

    def __init__(self, **values: Any):
        """Init config, accepting field names in place of the variable names."""
        # Keyword values are keyed like the environment so they take priority
        aliases = {
            name: field.validation_alias
            for name, field in type(self).model_fields.items()
        }
        super().__init__(
            **{aliases.get(key) or key: value for key, value in values.items()}
        )
