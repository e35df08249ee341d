"""
Service configuration loaded from the environment.

Values may come from the process environment or a ``.env`` file in the
working directory (loaded with python-dotenv; real environment wins).
"""
import logging
import os
import urllib.parse
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from web3 import Web3

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

# Environment variable -> AppConfig field
ENV_FIELDS = {
    "RPC_URL": "rpc_url",
    "TX_SIGNER": "tx_signer",
    "CONTRACT_ADDRESS": "contract_address",
    "PORT": "port",
    "HOST": "host",
    "LOG_LEVEL": "log_level",
    "RPC_TIMEOUT": "rpc_timeout",
    "GAS_LIMIT": "gas_limit",
}


class AppConfig(BaseModel):
    """Runtime configuration of the service"""
    model_config = ConfigDict(frozen=True)

    rpc_url: str
    tx_signer: str
    contract_address: str
    port: int = 3000
    host: str = "127.0.0.1"
    log_level: str = "INFO"
    rpc_timeout: int = 30
    gas_limit: Optional[int] = None

    @field_validator("rpc_url")
    @classmethod
    def _check_rpc_url(cls, value: str) -> str:
        parsed = urllib.parse.urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"must be an http(s) URL (got: {value!r})")
        # Check if it's a localhost or 127.0.0.1 address (with or without port)
        host = parsed.hostname or ""
        if parsed.scheme != "https" and host not in ("localhost", "127.0.0.1"):
            logger.warning(f"RPC_URL uses {parsed.scheme}:// for a non-local host; prefer https://")
        return value

    @field_validator("contract_address")
    @classmethod
    def _check_contract_address(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError(f"invalid address: {value!r}")
        return Web3.to_checksum_address(value)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value!r}")
        return level

    @field_validator("port")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 0 < value < 65536:
            raise ValueError(f"port out of range: {value}")
        return value

    def __repr__(self) -> str:
        # Keep the signing key out of logs and tracebacks
        return (
            f"AppConfig(rpc_url={self.rpc_url!r}, contract_address={self.contract_address!r}, "
            f"host={self.host!r}, port={self.port}, log_level={self.log_level!r})"
        )

    __str__ = __repr__

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "AppConfig":
        """
        Build the configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
            dotenv: Whether to load a ``.env`` file first

        Returns:
            Validated configuration

        Raises:
            ConfigError: If a required variable is missing or a value is invalid
        """
        if environ is None:
            if dotenv:
                load_dotenv(find_dotenv(usecwd=True))
            environ = os.environ

        values = {}
        for env_name, field_name in ENV_FIELDS.items():
            raw = environ.get(env_name)
            if raw is not None and raw.strip() != "":
                values[field_name] = raw.strip()

        try:
            return cls(**values)
        except ValidationError as e:
            fields = {v: k for k, v in ENV_FIELDS.items()}
            problems = []
            for err in e.errors():
                field_name = str(err["loc"][0]) if err["loc"] else ""
                env_name = fields.get(field_name, field_name)
                if err["type"] == "missing":
                    problems.append(f"{env_name} is required")
                else:
                    problems.append(f"{env_name}: {err['msg']}")
            raise ConfigError("invalid configuration: " + "; ".join(problems)) from None
