from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ROOT = Path(__file__).resolve().parent.parent
_CONFIG_PATH = _ROOT / "config.yaml"


def _load_yaml_config() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml_config()
_llm = _yaml.get("llm", {})
_pipeline = _yaml.get("pipeline", {})

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant specialized in writing product reviews."


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_ROOT / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM credentials (already decrypted; supplied by the environment)
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    gemini_api_key: str = ""

    # Provider profiles, see config.yaml llm.providers
    provider_profiles: list[dict] = Field(default_factory=lambda: list(_llm.get("providers", [])))
    system_prompt: str = _llm.get("system_prompt", DEFAULT_SYSTEM_PROMPT)

    # Pipeline budgets
    sliding_window_size: int = _pipeline.get("sliding_window_size", 2)
    sliding_entry_chars: int = _pipeline.get("sliding_entry_chars", 1000)
    full_context_chars: int = _pipeline.get("full_context_chars", 8000)
    intro_excerpt_chars: int = _pipeline.get("intro_excerpt_chars", 500)
    session_timeout: float = _pipeline.get("session_timeout", 600.0)

    # Web
    web_host: str = _yaml.get("web", {}).get("host", "127.0.0.1")
    web_port: int = _yaml.get("web", {}).get("port", 8000)

    # Paths
    data_dir: Path = Field(default=_ROOT / "data")
    prompts_dir: Path = Field(default=_ROOT / "prompts")
    export_dir: str = _yaml.get("export", {}).get("markdown_dir", "")

    @property
    def db_path(self) -> Path:
        return self.data_dir / "db.sqlite3"

    @property
    def documents_dir(self) -> Path:
        return self.data_dir / "documents"

    @property
    def markdown_export_path(self) -> Path | None:
        if not self.export_dir:
            return None
        return Path(self.export_dir).expanduser()


settings = Settings()
