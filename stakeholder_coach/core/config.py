"""
Core configuration module for the Stakeholder Interview Coach.
Loads settings from environment variables and YAML config files.
"""
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR = Path(__file__).parent.parent / "config"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = "Stakeholder_Interview_Coach"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Session persistence
    session_store: str = "memory"  # memory | mongodb
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "stakeholder_coach"

    # Model Provider Overrides
    provider_llm: Optional[str] = None
    provider_llm_model: Optional[str] = None

    # Ollama
    ollama_api_url: str = "http://localhost:11434"

    # OpenAI-compatible endpoint (OpenAI, vLLM, LM Studio...)
    openai_api_url: str = "https://api.openai.com/v1"
    openai_api_key: Optional[str] = None

    # Judgment oracle
    oracle_timeout_seconds: float = Field(default=20.0, gt=0)
    oracle_max_retries: int = Field(default=1, ge=0, le=1)

    # Conversation
    history_window: int = Field(default=6, ge=0)
    context_readiness: str = "oracle"  # oracle | heuristic
    default_scenario_id: str = "customer-onboarding-optimization"

    # Config file overrides
    models_config_path: Optional[str] = None
    stages_config_path: Optional[str] = None
    scenarios_config_path: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_model_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load model configuration from YAML file.
    Environment variables can override provider and model selection.
    """
    settings = get_settings()
    path = Path(config_path or settings.models_config_path or CONFIG_DIR / "models.yaml")
    config = _load_yaml(path)

    llm_config = config.setdefault("providers", {}).setdefault("llm", {})
    if settings.provider_llm:
        llm_config["provider"] = settings.provider_llm
    if settings.provider_llm_model:
        llm_config["model"] = settings.provider_llm_model

    return config


def load_stage_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the interview stage definitions from YAML."""
    settings = get_settings()
    path = Path(config_path or settings.stages_config_path or CONFIG_DIR / "stages.yaml")
    return _load_yaml(path)


def load_scenario_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load practice scenarios and their personas from YAML."""
    settings = get_settings()
    path = Path(config_path or settings.scenarios_config_path or CONFIG_DIR / "scenarios.yaml")
    return _load_yaml(path)
