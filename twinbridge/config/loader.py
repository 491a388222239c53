"""Config loader for the twinbridge project."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, MutableMapping, Optional

from solders.pubkey import Pubkey
from web3 import Web3

if TYPE_CHECKING:
    from twinbridge.core.retry import RetryPolicy


class ConfigError(ValueError):
    """Raised when configuration data is invalid or missing."""


def _require_keys(data: Mapping[str, Any], keys: Iterable[str], context: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        raise ConfigError(f"{context} missing required keys: {', '.join(missing)}")


def _to_checksum(value: str, *, field_name: str) -> str:
    try:
        return Web3.to_checksum_address(value)
    except Exception as exc:  # web3 raises ValueError/TypeError for malformed inputs
        raise ConfigError(f"Invalid address for {field_name}: {value}") from exc


def _optional_checksum(value: Optional[str], *, field_name: str) -> Optional[str]:
    if not value:
        return None
    return _to_checksum(value, field_name=field_name)


def _to_pubkey(value: str, *, field_name: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except Exception as exc:  # solders raises ValueError for bad base58 / length
        raise ConfigError(f"Invalid Solana public key for {field_name}: {value}") from exc


@dataclass(frozen=True)
class SolanaChainConfig:
    """Solana RPC settings."""

    rpc_url: str
    commitment: str = "confirmed"
    explorer_url: str = "https://explorer.solana.com"

    def explorer_tx_url(self, signature: str) -> str:
        return f"{self.explorer_url}/tx/{signature}"


@dataclass(frozen=True)
class BaseChainConfig:
    """Base (EVM) RPC settings."""

    chain_id: int
    rpc_url: Optional[str] = None
    explorer_url: str = "https://basescan.org"

    def ensure_rpc_url(self) -> str:
        """Return the RPC URL or raise if it is missing."""
        if not self.rpc_url:
            raise ConfigError("Base RPC URL required but not configured")
        return self.rpc_url

    def explorer_address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"


@dataclass(frozen=True)
class ProgramsConfig:
    """Solana program ids and fixed accounts used by the bridge."""

    bridge_program: Pubkey
    relayer_program: Pubkey
    gas_fee_receiver: Pubkey


@dataclass(frozen=True)
class ContractsConfig:
    """Base contract addresses."""

    bridge: str
    wrapped_sol: str
    twin_adapter: Optional[str] = None


@dataclass(frozen=True)
class TokenConfig:
    """ERC20 token details on Base."""

    symbol: str
    address: str
    decimals: int


@dataclass(frozen=True)
class TokensConfig:
    """Swap pair quoted by the price API (source is the bridged asset)."""

    source: TokenConfig
    destination: TokenConfig


@dataclass(frozen=True)
class DefaultsConfig:
    """Default operational parameters."""

    default_gas_limit: int = 200_000
    medium_gas_limit: int = 400_000
    complex_gas_limit: int = 3_000_000
    min_bridge_lamports: int = 1_000_000
    bridge_fee_lamports: int = 3_000_000
    fee_buffer_lamports: int = 10_000_000
    min_quote_lamports: int = 100_000
    slippage_bps: int = 700
    max_slippage_bps: int = 1_000
    quote_max_age: float = 30.0
    amplification_attempts: int = 1
    setup_allowance_threshold: int = 10**18
    api_timeout: int = 10


@dataclass(frozen=True)
class RetryConfig:
    """Backoff parameters for rate-limited calls."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 4.0

    def to_policy(self) -> RetryPolicy:
        from twinbridge.core.retry import RetryPolicy

        return RetryPolicy(max_attempts=self.max_attempts, base_delay=self.base_delay, max_delay=self.max_delay)


@dataclass(frozen=True)
class ApiUrlsConfig:
    """API endpoints required for quoting logic."""

    price_quote: str
    swap_build: str
    api_key: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class BridgeConfig:
    """Typed wrapper around the twinbridge configuration."""

    solana: SolanaChainConfig
    base: BaseChainConfig
    programs: ProgramsConfig
    contracts: ContractsConfig
    tokens: TokensConfig
    defaults: DefaultsConfig
    retry: RetryConfig
    api_urls: ApiUrlsConfig
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Return the original configuration mapping."""
        return dict(self.raw)

    def require_twin_adapter(self) -> str:
        """Return the twin adapter address or raise if it is not configured."""
        from twinbridge.core.errors import ConfigurationError

        if not self.contracts.twin_adapter:
            raise ConfigurationError("Twin adapter address not configured. Set SOLANA_TWIN_ADAPTER.")
        return self.contracts.twin_adapter


def _load_json(path: Path) -> MutableMapping[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file contains invalid JSON: {path}") from exc


def _apply_env_overrides(data: MutableMapping[str, Any], env: Mapping[str, str]) -> None:
    overrides = {
        "SOLANA_RPC_URL": ("chains", "solana", "rpc_url"),
        "BASE_RPC_URL": ("chains", "base", "rpc_url"),
        "SOLANA_TWIN_ADAPTER": ("contracts", "twin_adapter"),
        "QUOTE_API_KEY": ("api_urls", "api_key"),
    }
    for variable, path in overrides.items():
        value = (env.get(variable) or "").strip()
        if not value:
            continue
        target = data
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = value


def _parse_token(data: Mapping[str, Any], context: str) -> TokenConfig:
    _require_keys(data, ["symbol", "address", "decimals"], context)
    decimals = int(data["decimals"])
    if decimals < 0 or decimals > 36:
        raise ConfigError(f"{context}.decimals out of range: {decimals}")
    return TokenConfig(
        symbol=str(data["symbol"]),
        address=_to_checksum(data["address"], field_name=f"{context}.address"),
        decimals=decimals,
    )


def _parse_defaults(data: Mapping[str, Any]) -> DefaultsConfig:
    known = DefaultsConfig.__dataclass_fields__
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigError(f"defaults has unknown keys: {', '.join(unknown)}")
    values = {}
    for name, value in data.items():
        kind = float if known[name].type in ("float", float) else int
        try:
            values[name] = kind(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"defaults.{name} must be numeric, got {value!r}") from exc
    defaults = DefaultsConfig(**values)

    positive = [
        "default_gas_limit",
        "medium_gas_limit",
        "complex_gas_limit",
        "min_bridge_lamports",
        "min_quote_lamports",
        "quote_max_age",
        "api_timeout",
    ]
    for name in positive:
        if getattr(defaults, name) <= 0:
            raise ConfigError(f"defaults.{name} must be positive")
    if defaults.bridge_fee_lamports < 0 or defaults.fee_buffer_lamports < 0:
        raise ConfigError("defaults fee amounts must be non-negative")
    if not 0 <= defaults.slippage_bps <= defaults.max_slippage_bps:
        raise ConfigError("defaults.slippage_bps must be between 0 and defaults.max_slippage_bps")
    if defaults.amplification_attempts < 0:
        raise ConfigError("defaults.amplification_attempts must be non-negative")
    return defaults


def load_config(config_path: Optional[Path] = None, *, env: Optional[Mapping[str, str]] = None) -> BridgeConfig:
    """Load and validate twinbridge configuration data."""
    config_path = config_path or Path("config.json")
    data = _load_json(config_path)
    _apply_env_overrides(data, os.environ if env is None else env)

    _require_keys(data, ["chains", "programs", "contracts", "tokens", "api_urls"], "config")

    chains = data["chains"]
    programs = data["programs"]
    contracts = data["contracts"]
    tokens = data["tokens"]
    api_urls = data["api_urls"]

    _require_keys(chains, ["solana", "base"], "chains")

    solana_data = chains["solana"]
    _require_keys(solana_data, ["rpc_url"], "solana chain")
    solana_chain = SolanaChainConfig(
        rpc_url=str(solana_data["rpc_url"]),
        commitment=str(solana_data.get("commitment", "confirmed")),
        explorer_url=str(solana_data.get("explorer_url", "https://explorer.solana.com")),
    )

    base_data = chains["base"]
    _require_keys(base_data, ["chain_id"], "base chain")
    base_chain = BaseChainConfig(
        chain_id=int(base_data["chain_id"]),
        rpc_url=base_data.get("rpc_url"),
        explorer_url=str(base_data.get("explorer_url", "https://basescan.org")),
    )

    _require_keys(programs, ["bridge_program", "relayer_program", "gas_fee_receiver"], "programs")
    programs_config = ProgramsConfig(
        bridge_program=_to_pubkey(programs["bridge_program"], field_name="bridge_program"),
        relayer_program=_to_pubkey(programs["relayer_program"], field_name="relayer_program"),
        gas_fee_receiver=_to_pubkey(programs["gas_fee_receiver"], field_name="gas_fee_receiver"),
    )

    _require_keys(contracts, ["bridge", "wrapped_sol"], "contracts")
    contracts_config = ContractsConfig(
        bridge=_to_checksum(contracts["bridge"], field_name="bridge"),
        wrapped_sol=_to_checksum(contracts["wrapped_sol"], field_name="wrapped_sol"),
        twin_adapter=_optional_checksum(contracts.get("twin_adapter"), field_name="twin_adapter"),
    )

    _require_keys(tokens, ["source", "destination"], "tokens")
    tokens_config = TokensConfig(
        source=_parse_token(tokens["source"], "tokens.source"),
        destination=_parse_token(tokens["destination"], "tokens.destination"),
    )
    if tokens_config.source.address != contracts_config.wrapped_sol:
        raise ConfigError("tokens.source.address must match contracts.wrapped_sol")

    defaults_config = _parse_defaults(data.get("defaults", {}))

    retry_data = data.get("retry", {})
    try:
        retry_config = RetryConfig(
            max_attempts=int(retry_data.get("max_attempts", 3)),
            base_delay=float(retry_data.get("base_delay", 1.0)),
            max_delay=float(retry_data.get("max_delay", 4.0)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"retry section is invalid: {exc}") from exc
    if retry_config.max_attempts < 1:
        raise ConfigError("retry.max_attempts must be at least 1")
    if retry_config.base_delay < 0 or retry_config.max_delay < retry_config.base_delay:
        raise ConfigError("retry delays must satisfy 0 <= base_delay <= max_delay")

    _require_keys(api_urls, ["price_quote", "swap_build"], "api_urls")
    api_config = ApiUrlsConfig(
        price_quote=str(api_urls["price_quote"]),
        swap_build=str(api_urls["swap_build"]),
        api_key=api_urls.get("api_key") or None,
    )

    return BridgeConfig(
        solana=solana_chain,
        base=base_chain,
        programs=programs_config,
        contracts=contracts_config,
        tokens=tokens_config,
        defaults=defaults_config,
        retry=retry_config,
        api_urls=api_config,
        raw=data,
    )


__all__ = [
    "ApiUrlsConfig",
    "BaseChainConfig",
    "BridgeConfig",
    "ConfigError",
    "ContractsConfig",
    "DefaultsConfig",
    "ProgramsConfig",
    "RetryConfig",
    "SolanaChainConfig",
    "TokenConfig",
    "TokensConfig",
    "load_config",
]
