from typing import ClassVar

from filesense.config.settings import Settings
from filesense.naming.base import BaseFilenameSuggester
from filesense.naming.example_client_adapter import ExampleClientAdapter
from filesense.naming.openai_client_adapter import OpenAIClientAdapter
from filesense.naming.suggester import FilenameSuggester


class SuggesterFactory:
    """Creates the configured filename suggester."""

    OPENAI_COMPATIBLE_BASE_URLS: ClassVar[dict[str, str]] = {
        "openrouter": "https://openrouter.ai/api/v1",
        "groq": "https://api.groq.com/openai/v1",
        "together": "https://api.together.xyz/v1",
        "deepseek": "https://api.deepseek.com/v1",
        "ollama": "http://localhost:11434/v1",
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseFilenameSuggester:
        """Create a configured suggester from application settings."""
        provider = settings.naming_provider.lower()
        if provider == "example":
            return FilenameSuggester(client=ExampleClientAdapter(), model="example")
        client = OpenAIClientAdapter(
            api_key=settings.naming_api_key,
            timeout_seconds=settings.naming_timeout_seconds,
            base_url=cls._resolve_base_url(provider, settings),
        )
        return FilenameSuggester(
            client=client,
            model=settings.naming_model_name,
            temperature=settings.naming_temperature,
            max_tokens=settings.naming_max_tokens,
        )

    @classmethod
    def _resolve_base_url(cls, provider: str, settings: Settings) -> str | None:
        override = (settings.naming_base_url or "").strip()
        if provider == "openai":
            return override or None
        if provider == "openai_compatible":
            if not override:
                raise ValueError(
                    "naming_base_url is required for naming_provider=openai_compatible"
                )
            return override
        default_base_url = cls.OPENAI_COMPATIBLE_BASE_URLS.get(provider)
        if default_base_url is not None:
            return override or default_base_url
        supported = [
            "example",
            "openai",
            "openai_compatible",
            *sorted(cls.OPENAI_COMPATIBLE_BASE_URLS),
        ]
        raise ValueError(f"Unknown naming provider '{provider}'. Choose from: {supported}")
