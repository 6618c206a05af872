from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "llm_provider": "gemini",
    "llm_model": "gemini-2.5-flash",
    "llm_temperature": 0.7,
    "embedding_provider": "gemini",
    "embedding_model": "models/text-embedding-004",
    "embedding_dim": 768,
    "elastic_url": "http://localhost:9200",
    "elastic_api_key": "",
    "index_name": "quizgen",
    "quiz_index_name": "",
    "ollama_url": "http://localhost:11434",
    "chunk_size": 1200,
    "max_context_chars": 12000,
    "default_question_count": 10,
    "generation_timeout": 60.0,
    "embed_timeout": 20.0,
    "search_timeout": 30.0,
    "embed_concurrency": 8,
}

# Deployment settings that may come from the environment instead of config.json
ENV_OVERRIDES = {
    "ELASTIC_URL": "elastic_url",
    "ELASTIC_API_KEY": "elastic_api_key",
    "ELASTIC_INDEX": "index_name",
    "GEMINI_MODEL": "llm_model",
    "LLM_PROVIDER": "llm_provider",
    "EMBEDDING_PROVIDER": "embedding_provider",
}

# Never written back to config.json
SECRET_FIELDS = {"elastic_api_key"}


@dataclass
class Settings:
    llm_provider: str = DEFAULTS["llm_provider"]
    llm_model: str = DEFAULTS["llm_model"]
    llm_temperature: float = DEFAULTS["llm_temperature"]
    embedding_provider: str = DEFAULTS["embedding_provider"]
    embedding_model: str = DEFAULTS["embedding_model"]
    embedding_dim: int = DEFAULTS["embedding_dim"]
    elastic_url: str = DEFAULTS["elastic_url"]
    elastic_api_key: str = DEFAULTS["elastic_api_key"]
    index_name: str = DEFAULTS["index_name"]
    quiz_index_name: str = DEFAULTS["quiz_index_name"]
    ollama_url: str = DEFAULTS["ollama_url"]
    chunk_size: int = DEFAULTS["chunk_size"]
    max_context_chars: int = DEFAULTS["max_context_chars"]
    default_question_count: int = DEFAULTS["default_question_count"]
    generation_timeout: float = DEFAULTS["generation_timeout"]
    embed_timeout: float = DEFAULTS["embed_timeout"]
    search_timeout: float = DEFAULTS["search_timeout"]
    embed_concurrency: int = DEFAULTS["embed_concurrency"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def quiz_index(self) -> str:
        """History index for quiz records; kept apart from the chunk index."""
        return self.quiz_index_name or f"{self.index_name}-quizzes"

    @property
    def embeddings_enabled(self) -> bool:
        return self.embedding_provider not in ("", "none")

    def to_dict(self) -> dict:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in SECRET_FIELDS
        }


def _apply_env(raw: dict) -> dict:
    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            raw[key] = value.strip()
    return raw


def load_settings() -> Settings:
    raw: dict = {}
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
    raw = _apply_env(raw)
    known = {f.name: f for f in fields(Settings)}
    filtered = {}
    for k, v in raw.items():
        if k not in known:
            continue
        # Env values arrive as strings; coerce to the default's type
        default = DEFAULTS[k]
        if isinstance(v, str) and not isinstance(default, str):
            v = type(default)(v)
        filtered[k] = v
    return Settings(**filtered)


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
