"""
Central configuration for the companion chat runtime.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    app_env: str
    app_name: str
    debug: bool
    log_level: str
    base_dir: Path
    database_url: str
    redis_url: str
    qdrant_url: str
    qdrant_api_key: str
    qdrant_collection: str
    embedding_model: str
    embedding_dims: int
    groq_api_key: str
    groq_model: str
    groq_fallback_model: str
    llm_timeout_seconds: float
    llm_max_retries: int
    llm_max_tokens: int
    llm_temperature: float
    llm_top_p: float
    llm_presence_penalty: float | None
    history_window: int
    recent_message_window: int
    prompt_dialogue_window: int
    vector_top_k: int
    vector_min_score: float | None
    vector_query_max_bytes: int
    repetition_threshold: float
    seed_delimiter: str
    strip_commas: bool
    rate_limit_requests: int
    rate_limit_window_seconds: int
    jwt_secret: str
    jwt_algorithm: str
    jwt_expire_minutes: int
    cors_allow_origins: list[str]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_optional_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    if raw.strip().lower() in {"", "none", "off"}:
        return None
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _database_url(base_dir: Path) -> str:
    raw = os.getenv("DATABASE_URL", "").strip()
    if raw:
        return raw
    return f"sqlite:///{base_dir / 'memory' / 'app.db'}"


def get_settings() -> Settings:
    base_dir = Path(__file__).resolve().parents[3]

    raw_origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
    if raw_origins.strip() == "*":
        cors_allow_origins = ["*"]
    else:
        cors_allow_origins = [x.strip() for x in raw_origins.split(",") if x.strip()]

    groq_model = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant").strip() or "llama-3.1-8b-instant"
    # Escaped newlines let .env files carry the paragraph delimiter.
    seed_delimiter = os.getenv("SEED_DELIMITER", "\n\n").replace("\\n", "\n") or "\n\n"

    return Settings(
        app_env=os.getenv("APP_ENV", "dev").strip().lower(),
        app_name=os.getenv("APP_NAME", "Companion"),
        debug=_env_bool("DEBUG", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        base_dir=base_dir,
        database_url=_database_url(base_dir),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0").strip(),
        qdrant_url=os.getenv("QDRANT_URL", "http://localhost:6333"),
        qdrant_api_key=os.getenv("QDRANT_API_KEY", "").strip(),
        qdrant_collection=os.getenv("QDRANT_COLLECTION", "companion").strip() or "companion",
        embedding_model=os.getenv("EMBEDDING_MODEL", "BAAI/bge-small-en-v1.5").strip(),
        embedding_dims=_env_int("EMBEDDING_DIMS", 384),
        groq_api_key=os.getenv("GROQ_API_KEY", "").strip(),
        groq_model=groq_model,
        groq_fallback_model=os.getenv("GROQ_FALLBACK_MODEL", "").strip() or groq_model,
        llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 30.0),
        llm_max_retries=max(0, _env_int("LLM_MAX_RETRIES", 1)),
        llm_max_tokens=_env_int("LLM_MAX_TOKENS", 512),
        llm_temperature=_env_float("LLM_TEMPERATURE", 0.98),
        llm_top_p=_env_float("LLM_TOP_P", 0.95),
        llm_presence_penalty=_env_optional_float("LLM_PRESENCE_PENALTY", 1.8),
        history_window=_env_int("HISTORY_WINDOW", 100),
        recent_message_window=_env_int("RECENT_MESSAGE_WINDOW", 50),
        prompt_dialogue_window=_env_int("PROMPT_DIALOGUE_WINDOW", 5),
        vector_top_k=_env_int("VECTOR_TOP_K", 5),
        vector_min_score=_env_optional_float("VECTOR_MIN_SCORE", 0.7),
        vector_query_max_bytes=_env_int("VECTOR_QUERY_MAX_BYTES", 9700),
        repetition_threshold=_env_float("REPETITION_THRESHOLD", 0.6),
        seed_delimiter=seed_delimiter,
        strip_commas=_env_bool("STRIP_COMMAS", True),
        rate_limit_requests=_env_int("RATE_LIMIT_REQUESTS", 10),
        rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 10),
        jwt_secret=os.getenv("JWT_SECRET", "CHANGE_ME_SECRET"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expire_minutes=_env_int("JWT_EXPIRE_MINUTES", 60),
        cors_allow_origins=cors_allow_origins,
    )
