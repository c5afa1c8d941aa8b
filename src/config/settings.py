# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Configuration settings for the legal hybrid search engine
"""

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

# Use find_dotenv() to locate .env regardless of the current working directory.
# Falls back to an explicit path relative to this file (project root) if not found.
_dotenv_path = find_dotenv(usecwd=True) or str(Path(__file__).resolve().parent.parent.parent / ".env")
load_dotenv(_dotenv_path)

_TRUTHY = ("true", "1", "yes")

# Provider names accepted by RERANKER_PROVIDER (see ProviderKind)
KNOWN_RERANKER_PROVIDERS: tuple[str, ...] = ("gemini", "cohere", "openai")


def _env_flag(name: str, default: str) -> bool:
    return (os.getenv(name, default)).strip().lower() in _TRUTHY


# ============================================
# Environment-based Configuration
# ============================================


class Config:
    """
    Centralized configuration loaded from environment variables.
    Edit .env file to change these values.
    """

    # Hosted reranker. Disabled unless explicitly turned on.
    RERANKER_ENABLED: bool = _env_flag("RERANKER_ENABLED", "false")
    # One of: gemini, cohere, openai
    RERANKER_PROVIDER: str = (os.getenv("RERANKER_PROVIDER") or "").strip().lower()
    RERANKER_API_KEY: str = (os.getenv("RERANKER_API_KEY") or "").strip()
    RERANKER_MODEL: str = (os.getenv("RERANKER_MODEL") or "").strip()
    # Provider-specific fallbacks when RERANKER_API_KEY / RERANKER_MODEL are unset
    GEMINI_API_KEY: str = (os.getenv("GEMINI_API_KEY") or "").strip()
    GEMINI_LLM_MODEL_PREF: str = (os.getenv("GEMINI_LLM_MODEL_PREF") or "").strip()
    OPENAI_API_KEY: str = (os.getenv("OPENAI_API_KEY") or "").strip()
    RERANKER_TIMEOUT_SECONDS: float = float(os.getenv("RERANKER_TIMEOUT_SECONDS", "30"))
    # Pause between provider batches (rate limits)
    RERANK_BATCH_DELAY_SECONDS: float = float(os.getenv("RERANK_BATCH_DELAY_SECONDS", "0.1"))

    # Fusion weights: semantic (vector) + hosted reranker + metadata relevance.
    # Well-formed weights sum to 1.0; this is not enforced.
    SEMANTIC_WEIGHT: float = float(os.getenv("SEMANTIC_WEIGHT", "0.6"))
    RERANKER_WEIGHT: float = float(os.getenv("RERANKER_WEIGHT", "0.3"))
    METADATA_WEIGHT: float = float(os.getenv("METADATA_WEIGHT", "0.1"))
    DIVERSITY_FACTOR: float = float(os.getenv("DIVERSITY_FACTOR", "0.1"))
    MAX_RESULTS: int = int(os.getenv("MAX_RESULTS", "10"))
    USE_HOSTED_RERANKER: bool = _env_flag("USE_HOSTED_RERANKER", "true")

    # Retrieval Settings
    SIMILARITY_THRESHOLD: float = float(os.getenv("SIMILARITY_THRESHOLD", "0.25"))
    # Each source is asked for top_n * multiplier candidates before fusion.
    CANDIDATE_MULTIPLIER: int = int(os.getenv("CANDIDATE_MULTIPLIER", "2"))
    SOURCE_TIMEOUT_SECONDS: float = float(os.getenv("SOURCE_TIMEOUT_SECONDS", "15"))
    ENRICHMENT_TIMEOUT_SECONDS: float = float(os.getenv("ENRICHMENT_TIMEOUT_SECONDS", "5"))

    # Log a per-result score breakdown after every search
    DEBUG_HYBRID_SEARCH: bool = _env_flag("DEBUG_HYBRID_SEARCH", "false")

    # Query length limit (chars) - reject oversize queries to avoid abuse and cost
    MAX_QUERY_LENGTH: int = int(os.getenv("MAX_QUERY_LENGTH", "2000"))

    # Metadata store / vector store (Supabase)
    SUPABASE_URL: str = (os.getenv("SUPABASE_URL") or "").strip()
    SUPABASE_KEY: str = (os.getenv("SUPABASE_KEY") or "").strip()
    METADATA_TABLE: str = os.getenv("METADATA_TABLE", "legal_judgment_metadata")
    VECTOR_SEARCH_RPC: str = os.getenv("VECTOR_SEARCH_RPC", "match_workspace_documents")


# Singleton instance
config = Config()


def resolve_reranker_api_key(provider: str) -> str:
    """Return the API key for *provider*, honouring provider-specific fallbacks."""
    if config.RERANKER_API_KEY:
        return config.RERANKER_API_KEY
    if provider == "gemini":
        return config.GEMINI_API_KEY
    if provider == "openai":
        return config.OPENAI_API_KEY
    return ""


def validate_config_dependencies() -> list[str]:
    """
    Cross-field validation. Returns a list of human-readable errors
    (empty when the configuration is consistent).
    """
    errors: list[str] = []

    for name in ("SEMANTIC_WEIGHT", "RERANKER_WEIGHT", "METADATA_WEIGHT"):
        value = getattr(config, name)
        if not 0.0 <= value <= 1.0:
            errors.append(f"{name} must be between 0 and 1 (got {value})")

    if not 0.0 <= config.DIVERSITY_FACTOR < 1.0:
        errors.append(f"DIVERSITY_FACTOR must be in [0, 1) (got {config.DIVERSITY_FACTOR})")

    if not 0.0 <= config.SIMILARITY_THRESHOLD <= 1.0:
        errors.append(f"SIMILARITY_THRESHOLD must be between 0 and 1 (got {config.SIMILARITY_THRESHOLD})")

    if config.MAX_RESULTS <= 0:
        errors.append(f"MAX_RESULTS must be positive (got {config.MAX_RESULTS})")
    if config.CANDIDATE_MULTIPLIER <= 0:
        errors.append(f"CANDIDATE_MULTIPLIER must be positive (got {config.CANDIDATE_MULTIPLIER})")
    if config.SOURCE_TIMEOUT_SECONDS <= 0:
        errors.append(f"SOURCE_TIMEOUT_SECONDS must be positive (got {config.SOURCE_TIMEOUT_SECONDS})")
    if config.RERANK_BATCH_DELAY_SECONDS < 0:
        errors.append(f"RERANK_BATCH_DELAY_SECONDS cannot be negative (got {config.RERANK_BATCH_DELAY_SECONDS})")

    if config.RERANKER_ENABLED:
        provider = config.RERANKER_PROVIDER
        if provider not in KNOWN_RERANKER_PROVIDERS:
            errors.append(
                f"RERANKER_PROVIDER must be one of {', '.join(KNOWN_RERANKER_PROVIDERS)} when "
                f"RERANKER_ENABLED=true (got {provider!r})"
            )
        elif not resolve_reranker_api_key(provider):
            errors.append(f"RERANKER_ENABLED=true but no API key found for provider {provider!r} (RERANKER_API_KEY)")

    return errors
