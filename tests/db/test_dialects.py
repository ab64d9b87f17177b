import pytest

from tableimport.db.dialects import MYSQL, POSTGRES, SQLITE


class TestNeedsQuoting:
    @pytest.mark.parametrize("dialect", [POSTGRES, MYSQL, SQLITE])
    def test_plain_identifier_left_alone(self, dialect):
        assert dialect.wrap_if_needed("first_name") == "first_name"
        assert dialect.wrap_if_needed("_col2") == "_col2"

    @pytest.mark.parametrize("dialect", [POSTGRES, MYSQL, SQLITE])
    def test_reserved_word_is_quoted(self, dialect):
        q = dialect.quote_char
        assert dialect.wrap_if_needed("select") == f"{q}select{q}"
        assert dialect.wrap_if_needed("Order") != "Order"

    @pytest.mark.parametrize("name", ["first name", "2020_total", "a-b", "price$", ""])
    def test_special_characters_are_quoted(self, name):
        assert SQLITE.needs_quoting(name)

    def test_postgres_quotes_mixed_case(self):
        assert POSTGRES.wrap_if_needed("CaseNumber") == '"CaseNumber"'

    def test_sqlite_and_mysql_leave_mixed_case(self):
        assert SQLITE.wrap_if_needed("CaseNumber") == "CaseNumber"
        assert MYSQL.wrap_if_needed("CaseNumber") == "CaseNumber"

    def test_dialect_specific_reserved_words(self):
        assert MYSQL.needs_quoting("range")
        assert not SQLITE.needs_quoting("range")
        assert SQLITE.needs_quoting("pragma")
        assert POSTGRES.needs_quoting("returning")


class TestQuote:
    def test_embedded_quote_doubled(self):
        assert SQLITE.quote('say "hi"') == '"say ""hi"""'

    def test_mysql_uses_backticks(self):
        assert MYSQL.quote("we`ird") == "`we``ird`"

    def test_wrap_names_if_needed(self):
        assert SQLITE.wrap_names_if_needed(["id", "from", "full name"]) == [
            "id",
            '"from"',
            '"full name"',
        ]


class TestQualify:
    def test_without_schema(self):
        assert POSTGRES.qualify("parcels") == "parcels"

    def test_with_schema(self):
        assert POSTGRES.qualify("parcels", "raw_data") == "raw_data.parcels"

    def test_each_part_wrapped_independently(self):
        assert POSTGRES.qualify("Parcels", "raw_data") == 'raw_data."Parcels"'


class TestPlaceholders:
    def test_sqlite_qmark(self):
        assert SQLITE.placeholders(3) == "?, ?, ?"

    def test_postgres_format(self):
        assert POSTGRES.placeholders(2) == "%s, %s"
