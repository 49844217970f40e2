from datetime import date

from filesense.naming.fallback import fallback_filename

DAY = date(2023, 12, 5)


class TestFallbackFilename:
    def test_uses_keyword_and_date(self) -> None:
        assert fallback_filename("Your INVOICE for December", DAY) == "Invoice_20231205"

    def test_first_keyword_in_list_order_wins(self) -> None:
        assert fallback_filename("report attached to this receipt", DAY) == "Receipt_20231205"

    def test_keyword_must_be_a_whole_word(self) -> None:
        assert fallback_filename("reportedly fine", DAY) == "Document_20231205"

    def test_default_when_no_keyword(self) -> None:
        assert fallback_filename("hello world", DAY) == "Document_20231205"

    def test_same_text_same_day_is_deterministic(self) -> None:
        text = "Invoice #42 from ACME"
        assert fallback_filename(text) == fallback_filename(text)

    def test_defaults_to_today(self) -> None:
        name = fallback_filename("invoice")
        assert name == f"Invoice_{date.today():%Y%m%d}"
