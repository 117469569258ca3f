"""Configuration loading.

Rules:
- Primary source: `aria_config.json` at the project root.
- Overrides: text files under `config/`, then environment variables.
- Validation: Pydantic models enforce required fields and value ranges.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("aria_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class StorageConfig(BaseModel):
    path: str = Field(default=".aria/local_storage.json")


class SyncConfig(BaseModel):
    remote_base_url: str
    debounce_ms: int = Field(default=1000, ge=0)
    saved_reset_ms: int = Field(default=2000, ge=0)
    request_timeout_s: float = Field(default=15.0, gt=0)

    @field_validator("remote_base_url")
    @classmethod
    def url_must_be_http(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("sync.remote_base_url must be an http(s) URL")
        return v.rstrip("/")


class AIConfig(BaseModel):
    base_url: str
    max_retries: int = Field(default=3, ge=1)
    timeout_s: float = Field(default=45.0, gt=0)
    assistant_timeout_s: float = Field(default=60.0, gt=0)


class AppConfig(BaseModel):
    database: DatabaseConfig
    storage: StorageConfig
    sync: SyncConfig
    ai: AIConfig


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) aria_config.json at project root
    4) Defaults for local development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    def _pick(env_key: str, file_key: str, base_key: str, default: Optional[str] = None) -> Optional[str]:
        return _env(env_key) or _read_config_file(file_key) or _base(base_key, default)

    dsn = _pick("DATABASE_URL", "database.url", "database.dsn", "sqlite+pysqlite:///aria.db")
    storage_path = _pick("ARIA_STORAGE_PATH", "storage.path", "storage.path", ".aria/local_storage.json")

    remote_base_url = _pick("ARIA_REMOTE_BASE_URL", "sync.remote_base_url", "sync.remote_base_url", "http://127.0.0.1:8000/api/v1")
    debounce_ms = _pick("ARIA_DEBOUNCE_MS", "sync.debounce_ms", "sync.debounce_ms", "1000")
    saved_reset_ms = _pick("ARIA_SAVED_RESET_MS", "sync.saved_reset_ms", "sync.saved_reset_ms", "2000")
    request_timeout_s = _pick("ARIA_REQUEST_TIMEOUT_S", "sync.request_timeout_s", "sync.request_timeout_s", "15")

    ai_base_url = _pick("ARIA_AI_BASE_URL", "ai.base_url", "ai.base_url", "http://127.0.0.1:3000")
    ai_max_retries = _pick("ARIA_AI_MAX_RETRIES", "ai.max_retries", "ai.max_retries", "3")
    ai_timeout_s = _pick("ARIA_AI_TIMEOUT_S", "ai.timeout_s", "ai.timeout_s", "45")
    ai_assistant_timeout_s = _pick("ARIA_AI_ASSISTANT_TIMEOUT_S", "ai.assistant_timeout_s", "ai.assistant_timeout_s", "60")

    try:
        cfg = AppConfig(
            database=DatabaseConfig(dsn=dsn),
            storage=StorageConfig(path=storage_path),
            sync=SyncConfig(
                remote_base_url=remote_base_url,
                debounce_ms=int(str(debounce_ms).strip()),
                saved_reset_ms=int(str(saved_reset_ms).strip()),
                request_timeout_s=float(str(request_timeout_s).strip()),
            ),
            ai=AIConfig(
                base_url=ai_base_url,
                max_retries=int(str(ai_max_retries).strip()),
                timeout_s=float(str(ai_timeout_s).strip()),
                assistant_timeout_s=float(str(ai_assistant_timeout_s).strip()),
            ),
        )
        return cfg
    except PydanticValidationError as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "StorageConfig",
    "SyncConfig",
    "AIConfig",
    "load_config",
]
