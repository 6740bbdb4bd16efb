"""
Runtime configuration for the critique pipeline.
Values come from the process environment (optionally seeded from a .env file).
Policy constants that tests or operators tune are exposed through getters so
they are re-read at call time.
"""

import os
from pathlib import Path
from typing import Dict, List, Tuple

from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/dysapp.db")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Vector overlay configuration
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "memory")  # memory|faiss
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence_transformers
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "clip-ViT-B-32")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "multimodalembedding@001")
EMBEDDING_DIM = int(os.getenv("EMBEDDING_DIM", "1408"))
EMBEDDING_VERSION = int(os.getenv("EMBEDDING_VERSION", "1"))
ANALYSIS_VERSION = int(os.getenv("ANALYSIS_VERSION", "1"))

# Vision model configuration
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
VISION_MODEL = os.getenv("VISION_MODEL", "llava:latest")
VISION_TEMPERATURE = float(os.getenv("VISION_TEMPERATURE", "0.2"))
VISION_TOP_P = float(os.getenv("VISION_TOP_P", "0.95"))
VISION_TOP_K = int(os.getenv("VISION_TOP_K", "40"))

# Upload limits
MAX_IMAGE_SIZE_MB = int(os.getenv("MAX_IMAGE_SIZE_MB", "10"))
ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")

# Sanitizer list bounds
MAX_COLOR_PALETTE = 5
MAX_KEYWORDS = 20
MAX_NEXT_ACTIONS = 7
MAX_STRENGTHS = 5
MAX_WEAKNESSES = 5
MAX_SEARCH_QUERIES = 5

# Search limits
MAX_SIMILAR_RESULTS = 20
DEFAULT_SIMILAR_LIMIT = 10
MIN_SEARCH_QUERY_LENGTH = 2
MAX_SEARCH_QUERY_LENGTH = 200
MAX_SEARCH_RESULTS = 50
DEFAULT_SEARCH_LIMIT = 20
MAX_LIST_LIMIT = 100
DEFAULT_LIST_LIMIT = 20
FIX_SCOPE_EXAMPLE_LIMIT = 5

# Rate limiting: operation -> (max_requests, window_sec)
RATE_LIMIT_DEFAULTS: Dict[str, Tuple[int, int]] = {
    "analyze_design": (10, 60),
    "search_similar": (20, 60),
    "search_text": (30, 60),
    "save_item": (20, 60),
    "get_analyses": (60, 60),
    "get_bookmarks": (60, 60),
    "delete_bookmark": (30, 60),
    "delete_analysis": (30, 60),
    "get_user_profile": (60, 60),
    "default": (100, 60),
}
RATE_LIMIT_SWEEP_SEC = int(os.getenv("RATE_LIMIT_SWEEP_SEC", "300"))

VERSION = "1.0.0"


def debug_enabled() -> bool:
    """Check DEBUG at call time."""
    return os.getenv("DEBUG", "false").lower() == "true"


def get_db_path() -> str:
    return os.getenv("DB_PATH", DB_PATH)


def get_embedding_dim() -> int:
    return int(os.getenv("EMBEDDING_DIM", str(EMBEDDING_DIM)))


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    db_file = Path(db_path or get_db_path())
    db_file.parent.mkdir(parents=True, exist_ok=True)


def get_fix_scope_thresholds():
    """Build the FixScope thresholds from the environment."""
    from .diagnose import FixScopeThresholds

    return FixScopeThresholds(
        hierarchy_critical=int(os.getenv("HIERARCHY_CRITICAL", "50")),
        goal_clarity_critical=int(os.getenv("GOAL_CLARITY_CRITICAL", "50")),
        scanability_critical=int(os.getenv("SCANABILITY_CRITICAL", "50")),
        hierarchy_ambiguous_low=int(os.getenv("HIERARCHY_AMBIGUOUS_LOW", "50")),
        hierarchy_ambiguous_high=int(os.getenv("HIERARCHY_AMBIGUOUS_HIGH", "60")),
        grid_consistency_low=int(os.getenv("GRID_CONSISTENCY_LOW", "80")),
    )


def get_min_reference_score() -> int:
    return int(os.getenv("MIN_REFERENCE_SCORE", "70"))


def _parse_rate_limit(raw: str, fallback: Tuple[int, int]) -> Tuple[int, int]:
    """Parse '<max>/<window_sec>'; malformed values keep the fallback."""
    try:
        max_requests, window_sec = raw.split("/", 1)
        parsed = (int(max_requests), int(window_sec))
    except ValueError:
        return fallback
    if parsed[0] < 1 or parsed[1] < 1:
        return fallback
    return parsed


def get_rate_limits():
    """Per-operation limits, overridable through RATE_LIMIT_<OPERATION>."""
    from .rate_limiter import RateLimit

    limits = {}
    for operation, default in RATE_LIMIT_DEFAULTS.items():
        raw = os.getenv(f"RATE_LIMIT_{operation.upper()}")
        max_requests, window_sec = _parse_rate_limit(raw, default) if raw else default
        limits[operation] = RateLimit(max_requests=max_requests, window_sec=window_sec)
    return limits


def get_rate_limiter():
    """Get the configured in-process rate limiter (sweep not started)."""
    from .rate_limiter import InMemoryRateLimiter

    limits = get_rate_limits()
    default = limits.pop("default")
    return InMemoryRateLimiter(limits=limits, default=default,
                               sweep_interval_sec=int(os.getenv("RATE_LIMIT_SWEEP_SEC", str(RATE_LIMIT_SWEEP_SEC))))


def get_vector_store():
    """Get configured vector store implementation."""
    provider = os.getenv("VECTOR_PROVIDER", VECTOR_PROVIDER)
    if provider == "faiss":
        from dysapp.vector.faiss_store import FaissVectorStore
        return FaissVectorStore(dimension=get_embedding_dim())
    elif provider == "memory":
        from dysapp.vector.index import SimpleInMemoryVectorStore
        return SimpleInMemoryVectorStore()
    else:
        raise ValueError(f"Unknown vector provider: {provider}")


def get_embedding_provider():
    """Get configured embedding provider."""
    provider = os.getenv("EMBED_PROVIDER", EMBED_PROVIDER)
    if provider == "hash":
        from dysapp.vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=get_embedding_dim())
    elif provider == "sentence_transformers":
        from dysapp.vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(os.getenv("EMBED_MODEL_NAME", EMBED_MODEL_NAME))
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")


def get_generative_model():
    """Get the vision model client."""
    from .model_client import OllamaVisionModel

    return OllamaVisionModel(
        model=os.getenv("VISION_MODEL", VISION_MODEL),
        host=os.getenv("OLLAMA_HOST", OLLAMA_HOST),
        temperature=float(os.getenv("VISION_TEMPERATURE", str(VISION_TEMPERATURE))),
        top_p=VISION_TOP_P,
        top_k=VISION_TOP_K,
    )


def validate_config() -> List[str]:
    """Validate configuration and return a list of issues."""
    issues = []

    if os.getenv("VECTOR_PROVIDER", VECTOR_PROVIDER) not in ("memory", "faiss"):
        issues.append("VECTOR_PROVIDER must be 'memory' or 'faiss'")

    if os.getenv("EMBED_PROVIDER", EMBED_PROVIDER) not in ("hash", "sentence_transformers"):
        issues.append("EMBED_PROVIDER must be 'hash' or 'sentence_transformers'")

    if get_embedding_dim() < 1:
        issues.append("EMBEDDING_DIM must be >= 1")

    # The 1408 default is not the output size of any sentence-transformers image model
    if os.getenv("EMBED_PROVIDER", EMBED_PROVIDER) == "sentence_transformers" and "EMBEDDING_DIM" not in os.environ:
        issues.append("EMBEDDING_DIM must be set to the output size of EMBED_MODEL_NAME "
                      "when EMBED_PROVIDER is 'sentence_transformers'")

    thresholds = get_fix_scope_thresholds()
    if thresholds.hierarchy_ambiguous_low > thresholds.hierarchy_ambiguous_high:
        issues.append("HIERARCHY_AMBIGUOUS_LOW must not exceed HIERARCHY_AMBIGUOUS_HIGH")

    for operation in RATE_LIMIT_DEFAULTS:
        raw = os.getenv(f"RATE_LIMIT_{operation.upper()}")
        if raw and _parse_rate_limit(raw, (0, 0)) == (0, 0):
            issues.append(f"RATE_LIMIT_{operation.upper()} must look like '<max>/<window_sec>'")

    return issues
