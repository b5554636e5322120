"""
Staking configuration parameters for tipstake.

Defines reward economics, lock rules, token metadata and operational paths.

Sources, in increasing precedence:
1. StakingConfig defaults
2. JSON config file (validated by StakingConfigFile)
3. TIPSTAKE_* environment variables (a .env file is loaded first)
"""

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from tipstake.core.reward_math import SECONDS_PER_DAY, SECONDS_PER_YEAR

ENV_PREFIX = "TIPSTAKE_"


@dataclass(frozen=True)
class StakingConfig:
    """Pool-wide configuration parameters"""

    # Economics
    reward_rate: int = 10  # 10% per 365-day year
    penalty_rate: int = 1  # 1% of principal withdrawn before unlock
    min_lock_period: int = 7 * SECONDS_PER_DAY
    min_reward_threshold: int = 10**15  # 0.001 TIP, reserved
    seconds_per_year: int = SECONDS_PER_YEAR

    # Token metadata
    token_symbol: str = "TIP"
    token_decimals: int = 18

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")

    def to_dict(self) -> dict:
        return {
            "reward_rate": self.reward_rate,
            "penalty_rate": self.penalty_rate,
            "min_lock_period": self.min_lock_period,
            "min_reward_threshold": self.min_reward_threshold,
            "seconds_per_year": self.seconds_per_year,
            "token_symbol": self.token_symbol,
            "token_decimals": self.token_decimals,
            "data_dir": str(self.data_dir),
            "log_dir": str(self.log_dir),
        }

    def pool_constants(self) -> dict:
        """The fields a pool is created with and keeps for its lifetime."""
        return {name: getattr(self, name) for name in POOL_CONSTANTS}

    @classmethod
    def from_dict(cls, data: dict) -> "StakingConfig":
        """Rebuild from to_dict() output; paths stay at their defaults."""
        return cls(**{name: data[name] for name in POOL_CONSTANTS if name in data})


POOL_CONSTANTS = (
    "reward_rate",
    "penalty_rate",
    "min_lock_period",
    "min_reward_threshold",
    "seconds_per_year",
    "token_symbol",
    "token_decimals",
)


class StakingConfigFile(BaseModel):
    """Schema for config files and environment overrides. All keys optional."""

    model_config = ConfigDict(extra="forbid")

    reward_rate: Optional[int] = Field(default=None, ge=0, le=100)
    penalty_rate: Optional[int] = Field(default=None, ge=0, le=100)
    min_lock_period: Optional[int] = Field(default=None, ge=0)
    min_reward_threshold: Optional[int] = Field(default=None, ge=0)
    seconds_per_year: Optional[int] = Field(default=None, gt=0)
    token_symbol: Optional[str] = Field(default=None, min_length=1)
    token_decimals: Optional[int] = Field(default=None, ge=0, le=36)
    data_dir: Optional[Path] = None
    log_dir: Optional[Path] = None


def _env_overrides() -> Dict[str, Any]:
    """Collect TIPSTAKE_<FIELD> variables for known fields."""
    overrides = {}
    for name in StakingConfigFile.model_fields:
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None and value != "":
            overrides[name] = value
    return overrides


def load_config(
    config_path: Optional[str] = None,
    env_file: Optional[str] = None,
) -> StakingConfig:
    """
    Load configuration from file and environment, or use defaults.

    Args:
        config_path: Optional path to a JSON config file
        env_file: Optional .env file; defaults to searching from the cwd

    Returns:
        StakingConfig instance

    Raises:
        pydantic.ValidationError: On unknown keys or out-of-range values
        FileNotFoundError: If config_path does not exist
    """
    load_dotenv(env_file or find_dotenv(usecwd=True))

    values: Dict[str, Any] = {}
    if config_path:
        values.update(json.loads(Path(config_path).read_text(encoding="utf-8")))
    values.update(_env_overrides())

    validated = StakingConfigFile.model_validate(values)
    return replace(StakingConfig(), **validated.model_dump(exclude_none=True))
