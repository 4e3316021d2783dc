from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

BACKENDS = ("memory", "file", "dynamodb")


@dataclass(frozen=True)
class Settings:
    storage_backend: str = "memory"
    data_dir: Path = Path("./data")
    table_name: Optional[str] = None
    aws_region: Optional[str] = None
    dynamodb_endpoint_url: Optional[str] = None
    event_log_to_file: bool = False
    default_page_size: int = 20
    max_page_size: int = 100
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000
    jwt_secret: Optional[str] = field(default=None, repr=False)
    jwt_algorithm: str = "HS256"
    jwt_exp_minutes: int = 15


def _int(env: dict[str, str], name: str, default: int) -> int:
    raw = env.get(name, str(default))
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"Invalid {name}: {raw}") from e
    if value < 1:
        raise ValueError(f"Invalid {name}: {raw}")
    return value


def _bool(env: dict[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    backend = env.get("NOTES_STORAGE_BACKEND", "memory").strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"Invalid NOTES_STORAGE_BACKEND: {backend}")

    table_name = env.get("NOTES_TABLE_NAME") or None
    if backend == "dynamodb" and not table_name:
        raise ValueError("NOTES_TABLE_NAME is required when NOTES_STORAGE_BACKEND=dynamodb")

    default_page_size = _int(env, "NOTES_DEFAULT_PAGE_SIZE", 20)
    max_page_size = _int(env, "NOTES_MAX_PAGE_SIZE", 100)
    if default_page_size > max_page_size:
        raise ValueError("NOTES_DEFAULT_PAGE_SIZE must not exceed NOTES_MAX_PAGE_SIZE")

    origins = [o.strip() for o in env.get("NOTES_CORS_ORIGINS", "*").split(",") if o.strip()]

    return Settings(
        storage_backend=backend,
        data_dir=Path(env.get("NOTES_DATA_DIR", "./data")).expanduser(),
        table_name=table_name,
        aws_region=env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or None,
        dynamodb_endpoint_url=env.get("NOTES_DYNAMODB_ENDPOINT") or None,
        event_log_to_file=_bool(env, "NOTES_EVENT_LOG"),
        default_page_size=default_page_size,
        max_page_size=max_page_size,
        cors_origins=origins or ["*"],
        log_level=env.get("NOTES_LOG_LEVEL", "INFO").upper(),
        host=env.get("NOTES_HOST", "127.0.0.1"),
        port=_int(env, "NOTES_PORT", 8000),
        jwt_secret=env.get("JWT_SECRET") or None,
        jwt_algorithm=env.get("JWT_ALGORITHM", "HS256"),
        jwt_exp_minutes=_int(env, "JWT_EXP_MINUTES", 15),
    )
