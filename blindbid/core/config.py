"""
Client configuration parameters for BlindBid.

Defines RPC endpoints, batching and retry policy, cache freshness and
write-confirmation bounds.
"""

import json
import os
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


ENV_PREFIX = "BLINDBID_"


@dataclass
class ClientConfig:
    """Client-wide configuration parameters"""

    # Chain access
    rpc_url: str = "http://127.0.0.1:8545"
    factory_address: Optional[str] = None
    ipfs_gateway: str = "https://ipfs.io/ipfs/"

    # Ended-auction cache
    cache_freshness_seconds: float = 7 * 24 * 60 * 60.0  # 7 days
    max_cache_items: int = 200

    # Per-address retry
    max_fetch_attempts: int = 5
    backoff_base_seconds: float = 1.0  # wait before attempt k = base * 2^(k-1)

    # Batch planning
    small_set_threshold: int = 10  # <= this: batch 5, delay 1.5s
    large_set_threshold: int = 20  # > this: batch 2, delay 3s
    delay_doubling_errors: int = 3  # errors above this double the next wait
    degrade_errors: int = 6  # errors above this shrink the batch size
    degrade_delay_step_seconds: float = 1.0

    # Write path
    confirmation_timeout_seconds: float = 120.0

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("~/.blindbid").expanduser())
    log_dir: Path = Path("logs")

    def __post_init__(self):
        """Coerce paths and reject nonsensical limits"""
        self.data_dir = Path(self.data_dir).expanduser()
        self.log_dir = Path(self.log_dir).expanduser()

        if self.max_fetch_attempts < 1:
            raise ValueError("max_fetch_attempts must be at least 1")
        if self.cache_freshness_seconds <= 0:
            raise ValueError("cache_freshness_seconds must be positive")
        if self.small_set_threshold > self.large_set_threshold:
            raise ValueError("small_set_threshold cannot exceed large_set_threshold")
        if self.delay_doubling_errors > self.degrade_errors:
            raise ValueError("delay_doubling_errors cannot exceed degrade_errors")
        if self.confirmation_timeout_seconds <= 0:
            raise ValueError("confirmation_timeout_seconds must be positive")

    @property
    def db_path(self) -> Path:
        return self.data_dir / "blindbid.db"


def _coerce(raw: str, template: Any) -> Any:
    """Convert an environment string to the type of the field's default."""
    if isinstance(template, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(template, int):
        return int(raw)
    if isinstance(template, float):
        return float(raw)
    if isinstance(template, Path):
        return Path(raw)
    return raw


def load_config(config_path: Optional[str] = None, env_file: Optional[str] = None) -> ClientConfig:
    """
    Load configuration from defaults, a JSON file and the environment.

    Later sources win: defaults < JSON file < ``BLINDBID_*`` variables.
    A ``.env`` file is read into the environment first if present.

    Args:
        config_path: Optional path to a JSON config file
        env_file: Optional path to a dotenv file (default: ./.env)

    Returns:
        ClientConfig instance
    """
    load_dotenv(env_file)

    known = {f.name: f for f in fields(ClientConfig)}
    values: Dict[str, Any] = {}

    if config_path:
        data = json.loads(Path(config_path).read_text())
        unknown = set(data) - set(known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        values.update(data)

    for name, f in known.items():
        raw = os.environ.get(ENV_PREFIX + name.upper())
        if raw is None:
            continue
        template = f.default_factory() if f.default_factory is not MISSING else f.default
        values[name] = raw if template is None else _coerce(raw, template)

    return ClientConfig(**values)
