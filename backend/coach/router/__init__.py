from coach.router.fallback import FallbackResult, ProviderFallbackRouter
from coach.router.providers import (
    ClaudeProvider,
    GeminiProvider,
    OpenAIProvider,
    ProviderClient,
    ProviderConfig,
)

__all__ = [
    "ClaudeProvider",
    "FallbackResult",
    "GeminiProvider",
    "OpenAIProvider",
    "ProviderClient",
    "ProviderConfig",
    "ProviderFallbackRouter",
]
