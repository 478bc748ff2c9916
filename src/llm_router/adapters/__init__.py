"""Backend adapters implementing the ``Provider`` port."""

from llm_router.adapters.base import QuotaBackedProvider
from llm_router.adapters.factory import build_providers, build_router, create_router
from llm_router.adapters.gemini import GeminiProvider
from llm_router.adapters.openai_compat import OpenAICompatibleProvider, OpenRouterProvider

__all__ = [
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "OpenRouterProvider",
    "QuotaBackedProvider",
    "build_providers",
    "build_router",
    "create_router",
]
