from enum import Enum
from typing import Optional
from pydantic import BaseModel

from app.core.config import Settings


class LLMProvider(str, Enum):
    OPENAI = "openai"
    ABACUS = "abacus"
    LOCAL = "local"


# Default base URLs per provider; LOCAL has none and needs LLM_BASE_URL
PROVIDER_BASE_URLS = {
    LLMProvider.OPENAI: None,
    LLMProvider.ABACUS: "https://apps.abacus.ai/v1",
}


class LLMConfig(BaseModel):
    provider: LLMProvider
    model: str
    api_key: str = ""
    # For LOCAL this is the server root, e.g. http://127.0.0.1:8084
    base_url: Optional[str] = None
    max_tokens: int = 2000
    temperature: float = 0.2
    timeout: float = 120.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMConfig":
        return cls(
            provider=LLMProvider(settings.LLM_PROVIDER),
            model=settings.LLM_MODEL,
            api_key=settings.LLM_API_KEY,
            base_url=settings.LLM_BASE_URL,
            max_tokens=settings.LLM_MAX_TOKENS,
            temperature=settings.LLM_TEMPERATURE,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
