"""Configuration management for the stop simulator.

Rules:
- YAML provides defaults (config/default.yaml).
- Environment variables (.env or process env) override YAML for the few keys
  that matter at deploy time (ENVIRONMENT, LOG_LEVEL, PORT, BYBIT__BASE_URL, BYBIT__TIMEOUT_SEC).
- No YAML file -> built-in defaults; public market data needs no secrets.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MAINNET_URL = "https://api.bybit.com"
TESTNET_URL = "https://api-testnet.bybit.com"


class BybitConfig(BaseModel):
    """Bybit v5 public REST settings."""

    base_url: Optional[str] = Field(default=None, description="Override for the REST base URL")
    timeout_sec: float = Field(default=10.0, gt=0, le=120)
    default_category: str = Field(default="linear")
    price_categories: List[str] = Field(default_factory=lambda: ["linear", "spot", "inverse"])

    @field_validator("default_category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        v = str(v).strip().lower()
        if v not in {"spot", "linear", "inverse", "option"}:
            raise ValueError("default_category must be spot, linear, inverse or option")
        return v

    @field_validator("price_categories")
    @classmethod
    def validate_price_categories(cls, v: List[str]) -> List[str]:
        out = [str(x).strip().lower() for x in v if x and str(x).strip()]
        if not out:
            raise ValueError("price_categories must not be empty")
        return out


class SimulationConfig(BaseModel):
    default_stop_percents: List[float] = Field(default_factory=lambda: [10.0, 15.0, 20.0])
    max_page_size: int = Field(default=200, ge=1, le=1000)
    default_interval: str = Field(default="1")

    @field_validator("default_stop_percents")
    @classmethod
    def validate_stops(cls, v: List[float]) -> List[float]:
        if not v:
            raise ValueError("default_stop_percents must not be empty")
        if any(p <= 0 for p in v):
            raise ValueError("default_stop_percents must all be > 0")
        return [float(p) for p in v]


class APIConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    cors_origins: List[str] = Field(default=["http://localhost:3000", "http://localhost:5173"])


class StopSimConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = Field(default="MAINNET")
    log_level: str = Field(default="INFO")

    bybit: BybitConfig = Field(default_factory=BybitConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    api: APIConfig = Field(default_factory=APIConfig)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if str(v).upper() not in {"MAINNET", "TESTNET"}:
            raise ValueError("Environment must be 'MAINNET' or 'TESTNET'")
        return str(v).upper()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if str(v).upper() not in valid:
            raise ValueError(f"Log level must be one of: {sorted(valid)}")
        return str(v).upper()

    @property
    def bybit_base_url(self) -> str:
        if self.bybit.base_url:
            return self.bybit.base_url.rstrip("/")
        return TESTNET_URL if self.environment == "TESTNET" else MAINNET_URL

    @classmethod
    def from_yaml(cls, yaml_path: Optional[Path]) -> "StopSimConfig":
        """Parse YAML (if any) into the model, then apply env overrides on top."""
        data: dict = {}
        if yaml_path is not None:
            if not yaml_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {yaml_path}")
            try:
                with open(yaml_path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(data, dict):
            raise ValueError("Configuration file must contain a mapping at top level")

        if os.getenv("ENVIRONMENT"):
            data["environment"] = os.environ["ENVIRONMENT"]
        if os.getenv("LOG_LEVEL"):
            data["log_level"] = os.environ["LOG_LEVEL"]
        if os.getenv("PORT"):
            data["api"] = {**(data.get("api") or {}), "port": os.environ["PORT"]}

        bybit = dict(data.get("bybit") or {})
        if os.getenv("BYBIT__BASE_URL"):
            bybit["base_url"] = os.environ["BYBIT__BASE_URL"]
        if os.getenv("BYBIT__TIMEOUT_SEC"):
            bybit["timeout_sec"] = os.environ["BYBIT__TIMEOUT_SEC"]
        data["bybit"] = bybit

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Configuration validation error: {e}")


def load_config(config_path: Optional[Path] = None) -> StopSimConfig:
    """Load configuration from YAML + .env (env wins)."""
    load_dotenv(dotenv_path=Path(".env"))

    if config_path is None:
        possible_paths = [Path("config/default.yaml"), Path("config/config.yaml"), Path("config.yaml")]
        for path in possible_paths:
            if path.exists():
                config_path = path
                break

    return StopSimConfig.from_yaml(config_path)


_config: Optional[StopSimConfig] = None


def get_config() -> StopSimConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config
