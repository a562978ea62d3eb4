import logging
from abc import ABC, abstractmethod
from typing import Optional

from config.settings import Settings

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """Base class for chat-completion providers used by the classifier oracle"""

    name = "llm"

    @abstractmethod
    async def generate_response(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
        pass


class GroqProvider(BaseLLMProvider):
    """Groq cloud LLM provider"""

    name = "groq"

    def __init__(self, api_key: str, model: str, temperature: float = 0.1, max_tokens: int = 150):
        from groq import AsyncGroq
        # Retries are owned by the oracle so the total attempt count stays bounded
        self.client = AsyncGroq(api_key=api_key, max_retries=0)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate_response(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
        """Generate response using Groq"""
        messages = []
        if system_prompt:
            messages.append({'role': 'system', 'content': system_prompt})
        messages.append({'role': 'user', 'content': prompt})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=kwargs.get('temperature', self.temperature),
                max_tokens=kwargs.get('max_tokens', self.max_tokens),
                response_format={"type": "json_object"},
            )
            return response.choices[0].message.content or ""

        except Exception as e:
            logger.error(f"Groq generation failed: {e}")
            raise


class OllamaProvider(BaseLLMProvider):
    """Ollama local LLM provider"""

    name = "ollama"

    def __init__(self, base_url: str, model: str, temperature: float = 0.1, max_tokens: int = 150):
        import ollama
        self.client = ollama.AsyncClient(host=base_url)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate_response(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
        """Generate response using Ollama"""
        messages = []
        if system_prompt:
            messages.append({'role': 'system', 'content': system_prompt})
        messages.append({'role': 'user', 'content': prompt})

        try:
            response = await self.client.chat(
                model=self.model,
                messages=messages,
                format='json',
                options={
                    'temperature': kwargs.get('temperature', self.temperature),
                    'num_predict': kwargs.get('max_tokens', self.max_tokens),
                }
            )
            return response['message']['content']

        except Exception as e:
            logger.error(f"Ollama generation failed: {e}")
            raise


def create_llm_provider(settings: Settings) -> Optional[BaseLLMProvider]:
    """
    Build the provider named by LLM_PROVIDER. Returns None when the
    classifier is disabled or the provider is not configured.
    """
    if not settings.CLASSIFIER_ENABLED:
        logger.info("Classifier oracle disabled by configuration")
        return None

    provider = settings.LLM_PROVIDER.lower()
    if provider == "groq":
        if not settings.GROQ_API_KEY:
            logger.warning("GROQ_API_KEY not set; classifier oracle disabled")
            return None
        logger.info("Using Groq provider for classification")
        return GroqProvider(
            api_key=settings.GROQ_API_KEY,
            model=settings.LLM_MODEL,
            temperature=settings.CLASSIFIER_TEMPERATURE,
            max_tokens=settings.CLASSIFIER_MAX_TOKENS
        )
    if provider == "ollama":
        logger.info("Using Ollama provider for classification")
        return OllamaProvider(
            base_url=settings.OLLAMA_BASE_URL,
            model=settings.LLM_MODEL,
            temperature=settings.CLASSIFIER_TEMPERATURE,
            max_tokens=settings.CLASSIFIER_MAX_TOKENS
        )

    raise ValueError(f"Unknown LLM provider: {settings.LLM_PROVIDER}")
