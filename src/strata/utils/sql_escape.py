"""
SQL identifier and value escaping utilities.
"""


def escape_identifier(identifier: str, quote: str = '"') -> str:
    """
    Escape a SQL identifier (table, column or schema name).

    Wraps the identifier in ``quote`` and doubles any embedded quote
    characters. Double quotes suit PostgreSQL, Redshift, Snowflake and DuckDB;
    BigQuery uses backticks.

    Example:
        >>> escape_identifier("user_table")
        '"user_table"'
        >>> escape_identifier('table"name')
        '"table""name"'
    """
    if not identifier:
        raise ValueError("Identifier cannot be empty")
    escaped = identifier.replace(quote, quote * 2)
    return f"{quote}{escaped}{quote}"


def escape_qualified_name(*parts: str | None, quote: str = '"') -> str:
    """
    Escape a qualified name such as ``"database"."schema"."table"``.

    Empty parts (e.g. an unset database) are skipped.
    """
    return ".".join(escape_identifier(part, quote) for part in parts if part)


def escape_sql_string(value: str | None) -> str:
    """
    Escape a SQL string literal by doubling single quotes.

    Example:
        >>> escape_sql_string("O'Brien")
        "'O''Brien'"
    """
    if value is None:
        return "NULL"
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"
