import httpx
import openai

from filesense.naming.client_base import BaseNamingClient
from filesense.naming.exceptions import SuggestionError, SuggestionNetworkError


class OpenAIClientAdapter(BaseNamingClient):
    """Naming client built on the OpenAI-compatible chat completions API."""

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: int,
        base_url: str | None = None,
    ) -> None:
        self._has_credentials = bool(api_key) or base_url is not None
        self._client = openai.OpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
            max_retries=0,
        )

    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        user_prompt: str,
        system_prompt: str = "",
    ) -> str:
        if not self._has_credentials:
            raise SuggestionNetworkError("AI provider API key not configured")

        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        try:
            response = self._client.chat.completions.create(
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                messages=messages,  # type: ignore[arg-type]
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise SuggestionNetworkError(f"AI provider network error: {exc}") from exc
        except openai.RateLimitError as exc:
            raise SuggestionNetworkError(f"AI provider rate limit exceeded: {exc}") from exc
        except openai.APIError as exc:
            raise SuggestionNetworkError(f"AI provider API error: {exc}") from exc

        if not response.choices:
            raise SuggestionError("AI returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise SuggestionError("AI returned empty response")
        return content
