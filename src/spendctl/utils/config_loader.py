import yaml
import os
from pathlib import Path
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from .logging_config import StructuredLogger

logger = StructuredLogger(__name__)

DEFAULT_SOL_USD_PRICE = 150.0

# --- V1 Schema Models ---

class TelemetryConfig(BaseModel):
    console: bool = True
    jsonl_path: Optional[str] = None
    jsonl_buffer_size: int = Field(10, ge=1)
    webhook_url: Optional[str] = None


class SpendctlConfig(BaseModel):
    version: int = Field(1, ge=1, le=1)
    network: str = "solana-devnet"
    sol_usd_price: float = Field(DEFAULT_SOL_USD_PRICE, gt=0)
    policy_dir: Optional[str] = None
    log_level: str = "INFO"
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @field_validator("log_level")
    def validate_log_level(cls, v):
        level = str(v).strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{v}'")
        return level

# --- Config Loader (Atomic Reload) ---

class ConfigLoader:
    def __init__(self):
        self.config_dir = Path(os.getenv("SPENDCTL_CONFIG_DIR", str(Path.home() / ".spendctl" / "config")))
        self.config_file = self.config_dir / "config.yaml"
        self.config: Optional[SpendctlConfig] = None

    def load_config(self) -> SpendctlConfig:
        """
        Loads and validates configuration from config.yaml.
        ATOMIC: On failure, previous config is preserved.
        A missing file yields the defaults.
        """
        if not self.config_file.exists():
            logger.info("Config file not found, using defaults", path=str(self.config_file))
            if self.config is None:
                self.config = SpendctlConfig()
            return self.config

        try:
            with open(self.config_file, "r") as f:
                raw_data = yaml.safe_load(f) or {}

            logger.info("Loading configuration", path=str(self.config_file))

            # Validate into a temporary; self.config is untouched on failure
            new_config = SpendctlConfig(**raw_data)

            self.config = new_config

            logger.info("Configuration loaded successfully",
                        version=self.config.version,
                        network=self.config.network)
            return self.config

        except Exception as e:
            logger.error("Configuration validation failed", error=str(e))
            if self.config is not None:
                logger.warning("Keeping previous valid configuration")
                raise ValueError(f"Invalid configuration (previous config retained): {e}")
            else:
                logger.critical("No previous configuration to fall back to")
                raise ValueError(f"Invalid configuration (no fallback): {e}")

    def get_config(self) -> SpendctlConfig:
        if not self.config:
            self.load_config()
        return self.config

    def get_sol_usd_price(self) -> float:
        """SOL_USD_PRICE in the environment wins over the config file."""
        raw = (os.getenv("SOL_USD_PRICE") or "").strip()
        if raw:
            try:
                value = float(raw)
            except ValueError:
                raise ValueError(f"Invalid SOL price: {raw}")
            if value <= 0:
                raise ValueError(f"Invalid SOL price: {raw}")
            return value
        return self.get_config().sol_usd_price


config_loader = ConfigLoader()
