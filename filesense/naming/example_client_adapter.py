"""Example naming client adapter.

Use this module as a reference when implementing new provider adapters.
Implement BaseNamingClient and register the provider in SuggesterFactory.
"""

from typing import ClassVar

from filesense.naming.client_base import BaseNamingClient

DOCUMENT_MARKER = "Document content:"


class ExampleClientAdapter(BaseNamingClient):
    """Example adapter that answers from keywords in the document content.

    No network calls. Useful for local development and tests.
    """

    KEYWORD_NAMES: ClassVar[dict[str, str]] = {
        "invoice": "Invoice_ACME_Corp_Aug_2023",
        "receipt": "Receipt_Best_Buy_Dec_2023",
        "report": "Monthly_Report_Q3_2023",
    }
    DEFAULT_RESPONSE: ClassVar[str] = "Document_Dec_2023"

    def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        user_prompt: str,
        system_prompt: str = "",
    ) -> str:
        _ = model, temperature, max_tokens, system_prompt
        content = user_prompt.rsplit(DOCUMENT_MARKER, 1)[-1].lower()
        for keyword, name in self.KEYWORD_NAMES.items():
            if keyword in content:
                return name
        return self.DEFAULT_RESPONSE
