"""
Configuration Management
Loads settings from YAML files and environment variables
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Process settings loaded from environment"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LCE_",
        extra="ignore",
    )

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Supabase
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    # Maintenance sweep
    sweep_page_size: int = 100

    # Business-hour overrides for the YAML defaults
    business_timezone: Optional[str] = None
    business_hour: Optional[int] = None


class ConfigManager:
    """Manages loading and merging configuration from multiple sources"""

    def __init__(self, env: str = "development", config_dir: Optional[Path] = None):
        self.env = env
        self.config_dir = config_dir or Path(__file__).parent.parent / "config"
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration files in order of precedence"""
        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            self._config = self._load_yaml(default_path)
        else:
            logger.warning(f"No default config found at {default_path}")

        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self._deep_merge(self._config, env_config)

        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
        """Load YAML file"""
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _substitute_env_vars(self, config: Dict) -> None:
        """Replace ${VAR_NAME} with environment variable values"""
        for key, value in config.items():
            if isinstance(value, dict):
                self._substitute_env_vars(value)
            elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var = value[2:-1]
                config[key] = os.getenv(env_var, value)

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override into base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: config.get("cadence.phases.blitz_1_max_attempts") -> 3
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value


_settings: Optional[Settings] = None
_config_manager: Optional[ConfigManager] = None


def get_settings() -> Settings:
    """Get or create the process settings, loading .env first"""
    global _settings
    if _settings is None:
        load_dotenv()
        _settings = Settings()
    return _settings


def get_config_manager() -> ConfigManager:
    """Get or create the YAML config manager for the current environment"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(env=get_settings().environment)
    return _config_manager
