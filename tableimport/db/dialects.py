from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

COMMON_RESERVED_WORDS = frozenset(
    {
        "ADD", "ALL", "ALTER", "AND", "ANY", "AS", "ASC", "BETWEEN", "BY",
        "CASE", "CAST", "CHECK", "COLLATE", "COLUMN", "CONSTRAINT", "CREATE",
        "CROSS", "CURRENT_DATE", "CURRENT_TIME", "CURRENT_TIMESTAMP",
        "DEFAULT", "DELETE", "DESC", "DISTINCT", "DROP", "ELSE", "END",
        "EXCEPT", "EXISTS", "FALSE", "FOR", "FOREIGN", "FROM", "FULL",
        "GRANT", "GROUP", "HAVING", "IN", "INDEX", "INNER", "INSERT",
        "INTERSECT", "INTO", "IS", "JOIN", "KEY", "LEFT", "LIKE", "LIMIT",
        "NATURAL", "NOT", "NULL", "OFFSET", "ON", "OR", "ORDER", "OUTER",
        "PRIMARY", "REFERENCES", "RIGHT", "SELECT", "SET", "TABLE", "THEN",
        "TO", "TRUE", "UNION", "UNIQUE", "UPDATE", "USING", "VALUES", "WHEN",
        "WHERE", "WITH",
    }
)


@dataclass(frozen=True)
class Dialect:
    """
    Identifier quoting and parameter style for one SQL dialect.

    Identifiers are only wrapped when they have to be, so generated SQL
    stays readable and unquoted names keep the dialect's default folding.
    """

    name: str
    quote_char: str
    placeholder: str
    reserved_words: frozenset[str] = field(default=COMMON_RESERVED_WORDS)
    folds_to_lower: bool = False

    def needs_quoting(self, name: str) -> bool:
        if not _PLAIN_IDENTIFIER.match(name):
            return True
        if name.upper() in self.reserved_words:
            return True
        return self.folds_to_lower and name != name.lower()

    def quote(self, name: str) -> str:
        q = self.quote_char
        return f"{q}{name.replace(q, q * 2)}{q}"

    def wrap_if_needed(self, name: str) -> str:
        return self.quote(name) if self.needs_quoting(name) else name

    def wrap_names_if_needed(self, names: Iterable[str]) -> list[str]:
        return [self.wrap_if_needed(n) for n in names]

    def qualify(self, table: str, schema: str | None = None) -> str:
        if schema:
            return f"{self.wrap_if_needed(schema)}.{self.wrap_if_needed(table)}"
        return self.wrap_if_needed(table)

    def placeholders(self, count: int) -> str:
        return ", ".join([self.placeholder] * count)


POSTGRES = Dialect(
    name="postgresql",
    quote_char='"',
    placeholder="%s",
    reserved_words=COMMON_RESERVED_WORDS
    | {
        "ANALYSE", "ANALYZE", "ARRAY", "BOTH", "CURRENT_USER", "DO", "FETCH",
        "LATERAL", "LEADING", "ONLY", "PLACING", "RETURNING",
        "SESSION_USER", "SYMMETRIC", "TRAILING", "USER", "VARIADIC",
        "WINDOW",
    },
    folds_to_lower=True,
)

MYSQL = Dialect(
    name="mysql",
    quote_char="`",
    placeholder="%s",
    reserved_words=COMMON_RESERVED_WORDS
    | {
        "CHANGE", "CONDITION", "DATABASE", "DESCRIBE", "DIV", "EXPLAIN",
        "FULLTEXT", "IGNORE", "INTERVAL", "KEYS", "LOAD", "LOCK", "MOD",
        "OPTION", "RANGE", "READ", "REGEXP", "RELEASE", "RENAME", "REPLACE",
        "RLIKE", "SCHEMA", "SHOW", "SPATIAL", "UNLOCK", "USAGE", "USE",
        "WRITE",
    },
)

SQLITE = Dialect(
    name="sqlite",
    quote_char='"',
    placeholder="?",
    reserved_words=COMMON_RESERVED_WORDS
    | {
        "ABORT", "ACTION", "ATTACH", "AUTOINCREMENT", "CONFLICT", "DATABASE",
        "DETACH", "EXCLUSIVE", "GLOB", "IF", "INDEXED", "INSTEAD", "ISNULL",
        "NOTNULL", "PLAN", "PRAGMA", "QUERY", "RAISE", "REGEXP", "REINDEX",
        "RENAME", "REPLACE", "TEMP", "TEMPORARY", "TRANSACTION", "TRIGGER",
        "VACUUM", "VIEW", "VIRTUAL", "WITHOUT",
    },
)
