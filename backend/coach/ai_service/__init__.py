from coach.ai_service.config import AIConfig, load_ai_config
from coach.ai_service.models import AISuggestion, PerformanceMetrics, PerformanceReport, SuggestionResponse

__all__ = [
    "AIConfig",
    "AISuggestion",
    "PerformanceMetrics",
    "PerformanceReport",
    "SuggestionResponse",
    "load_ai_config",
]
