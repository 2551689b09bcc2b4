"""
Network endpoints, program ids and runtime settings.

Settings come from the environment (optionally seeded from a `.env` file);
every value has a devnet default so the library works out of the box.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

LAUNCHPAD_PROGRAM_ID = "5y2X9WML5ttrWrxzUfGrLSxbXfEcKTyV1dDyw2jXW1Zg"
INTENT_PROGRAM_ID = "2UPCMZ2LESPx8wU83wdng3Yjhx2yxRLEkEDYDkNUg1jd"
DEVNET_TREASURY = "GYLkraPfvT3UtUbdxcHiVWV2EShBoZtqW1Bcq4VazUCt"

DEFAULT_COMPUTE_UNIT_LIMIT = 400_000
DEFAULT_COMPUTE_UNIT_PRICE = 1_000  # micro-lamports per CU
DEFAULT_LAUNCHPAD_FEE_BPS = 200
DEFAULT_INTENT_FEE_BPS = 30
DEFAULT_RPC_TIMEOUT = 10.0


@dataclass(frozen=True)
class NetworkConfig:
    name: str
    rpc_url: str
    intent_program_id: str
    launchpad_program_id: str
    commitment: str = "confirmed"


NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        name="devnet",
        rpc_url="https://api.devnet.solana.com",
        intent_program_id=INTENT_PROGRAM_ID,
        launchpad_program_id=LAUNCHPAD_PROGRAM_ID,
    ),
    "localnet": NetworkConfig(
        name="localnet",
        rpc_url="http://127.0.0.1:8899",
        intent_program_id=INTENT_PROGRAM_ID,
        launchpad_program_id=LAUNCHPAD_PROGRAM_ID,
        commitment="processed",
    ),
}


@dataclass(frozen=True)
class Settings:
    network: NetworkConfig
    rpc_url: str
    treasury: str = DEVNET_TREASURY
    compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT
    compute_unit_price: int = DEFAULT_COMPUTE_UNIT_PRICE
    launchpad_fee_bps: int = DEFAULT_LAUNCHPAD_FEE_BPS
    intent_fee_bps: int = DEFAULT_INTENT_FEE_BPS
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT
    log_level: str = "WARNING"


def _int(environ: Mapping[str, str], name: str, default: int, *, upper: Optional[int] = None) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0 or (upper is not None and value > upper):
        raise ValueError(f"{name}={value} is out of range")
    return value


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build `Settings` from `environ` (default: `os.environ` after loading `.env`)."""
    if environ is None:
        load_dotenv()
        environ = os.environ

    network_name = environ.get("INTENTFI_NETWORK", "devnet").strip().lower()
    try:
        network = NETWORKS[network_name]
    except KeyError:
        raise ValueError(
            f"INTENTFI_NETWORK must be one of {', '.join(sorted(NETWORKS))}, got {network_name!r}"
        ) from None

    log_level = environ.get("INTENTFI_LOG_LEVEL", "WARNING").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"INTENTFI_LOG_LEVEL {log_level!r} is not a logging level")

    return Settings(
        network=network,
        rpc_url=environ.get("INTENTFI_RPC_URL") or network.rpc_url,
        treasury=environ.get("INTENTFI_TREASURY") or DEVNET_TREASURY,
        compute_unit_limit=_int(environ, "INTENTFI_COMPUTE_UNIT_LIMIT", DEFAULT_COMPUTE_UNIT_LIMIT),
        compute_unit_price=_int(environ, "INTENTFI_COMPUTE_UNIT_PRICE", DEFAULT_COMPUTE_UNIT_PRICE),
        launchpad_fee_bps=_int(
            environ, "INTENTFI_LAUNCHPAD_FEE_BPS", DEFAULT_LAUNCHPAD_FEE_BPS, upper=10_000
        ),
        intent_fee_bps=_int(environ, "INTENTFI_INTENT_FEE_BPS", DEFAULT_INTENT_FEE_BPS, upper=10_000),
        rpc_timeout=_float(environ, "INTENTFI_RPC_TIMEOUT", DEFAULT_RPC_TIMEOUT),
        log_level=log_level,
    )


__all__ = [
    "LAUNCHPAD_PROGRAM_ID",
    "INTENT_PROGRAM_ID",
    "DEVNET_TREASURY",
    "DEFAULT_COMPUTE_UNIT_LIMIT",
    "DEFAULT_COMPUTE_UNIT_PRICE",
    "DEFAULT_LAUNCHPAD_FEE_BPS",
    "DEFAULT_INTENT_FEE_BPS",
    "DEFAULT_RPC_TIMEOUT",
    "NetworkConfig",
    "NETWORKS",
    "Settings",
    "load_settings",
]
