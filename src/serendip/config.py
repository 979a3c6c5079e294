"""Runtime configuration for the serendip services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EXCLUDE_FOLDERS = ("templates", "attachments", "09_Embedded")
DEFAULT_DOMAIN_TAG_PREFIXES = ("domain/", "topic/")
DEFAULT_GENERIC_TERMS = (
    "note",
    "idea",
    "concept",
    "thought",
    "노트",
    "아이디어",
    "개념",
    "생각",
    "summary",
    "overview",
    "요약",
    "개요",
)


def _split_csv(value: tuple[str, ...] | str, default: tuple[str, ...]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return default


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="serendip_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"
    vault_dir: Path = Path("./vault")
    cache_path: Path = Path("./data/serendipity-cache.json")

    # Embedding source: the Vault Embeddings JSON folder or a Chroma collection
    embeddings_source: Literal["json", "chroma"] = "json"
    embeddings_folder: str = "09_Embedded"

    chroma_persist_dir: Path = Path("./.chroma")
    chroma_collection: str = "serendip-notes"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    embedding_model: str = "BAAI/bge-small-en-v1.5"
    embedding_dim: int = 384
    use_model_embeddings: bool = False

    evaluator_model: str = "Qwen/Qwen2.5-1.8B-Instruct"
    evaluator_max_new_tokens: int = 512
    evaluator_temperature: float = 0.7
    use_model_evaluator: bool = False

    # Discovery
    min_similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    min_serendipity_score: float = Field(default=0.4, ge=0.0, le=1.0)
    max_results: int = Field(default=10, ge=1, le=100)
    include_folders: tuple[str, ...] | str = ()
    exclude_folders: tuple[str, ...] | str = DEFAULT_EXCLUDE_FOLDERS
    classification_method: Literal["tag", "folder", "cluster"] = "tag"
    domain_tag_prefixes: tuple[str, ...] | str = DEFAULT_DOMAIN_TAG_PREFIXES
    generic_terms: tuple[str, ...] | str = DEFAULT_GENERIC_TERMS
    sample_size: int = Field(default=100, ge=1)

    # Deep (LLM-first) mode
    deep_max_pairs: int = Field(default=20, ge=1)
    deep_min_quality: float = Field(default=0.5, ge=0.0, le=1.0)
    deep_samples_per_domain: int = Field(default=3, ge=1)

    random_seed: int | None = None

    # CORS
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "DELETE", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    # Security
    api_key: str | None = None  # if set, required in X-API-Key header
    rate_limit_requests: int = 30  # per window per client
    rate_limit_window_seconds: int = 60

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @property
    def include_folders_tuple(self) -> tuple[str, ...]:
        return _split_csv(self.include_folders, ())

    @property
    def exclude_folders_tuple(self) -> tuple[str, ...]:
        return _split_csv(self.exclude_folders, DEFAULT_EXCLUDE_FOLDERS)

    @property
    def domain_tag_prefixes_tuple(self) -> tuple[str, ...]:
        return _split_csv(self.domain_tag_prefixes, DEFAULT_DOMAIN_TAG_PREFIXES) or DEFAULT_DOMAIN_TAG_PREFIXES

    @property
    def generic_terms_tuple(self) -> tuple[str, ...]:
        return _split_csv(self.generic_terms, DEFAULT_GENERIC_TERMS)

    @property
    def embeddings_dir(self) -> Path:
        return self.vault_dir / self.embeddings_folder


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
