from .errors import ConfigurationError, ParseError, ServiceError, W1HAIError
from .gemini_client import GeminiClient
from .models import (
    DIFFICULTIES,
    RECOMMENDED_ARTICLES,
    SUGGESTED_KEYWORDS,
    UNKNOWN,
    W1H_FIELDS,
    AnalysisResult,
    Article,
    Difficulty,
    SavedDocument,
    W1HAnswers,
    normalize_difficulty,
)
from .w1h_ai import W1HAIUtil

__all__ = [
    "AnalysisResult",
    "Article",
    "ConfigurationError",
    "DIFFICULTIES",
    "Difficulty",
    "GeminiClient",
    "ParseError",
    "RECOMMENDED_ARTICLES",
    "SUGGESTED_KEYWORDS",
    "SavedDocument",
    "ServiceError",
    "UNKNOWN",
    "W1HAIError",
    "W1HAIUtil",
    "W1HAnswers",
    "W1H_FIELDS",
    "normalize_difficulty",
]
