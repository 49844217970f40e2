from filesense.naming.example_client_adapter import ExampleClientAdapter
from filesense.naming.suggester import FilenameSuggester


def _complete(user_prompt: str) -> str:
    return ExampleClientAdapter().create_chat_completion(
        model="example",
        temperature=0.1,
        max_tokens=50,
        user_prompt=user_prompt,
    )


class TestExampleClientAdapter:
    def test_answers_from_document_keywords(self) -> None:
        assert _complete('Document content: "RECEIPT Best Buy"') == "Receipt_Best_Buy_Dec_2023"

    def test_default_answer(self) -> None:
        assert _complete('Document content: "hello"') == "Document_Dec_2023"

    def test_ignores_prompt_instructions(self) -> None:
        suggester = FilenameSuggester(client=ExampleClientAdapter(), model="example")
        # The bundled prompt mentions an invoice example; only the document counts.
        assert suggester.suggest("quarterly report", "scan.pdf") == "Monthly_Report_Q3_2023"
        assert suggester.suggest("meeting notes", "scan.pdf") == "Document_Dec_2023"
