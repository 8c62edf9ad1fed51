"""Tests for docstring section parsing."""

from __future__ import annotations

from docweave.models import Docstring
from docweave.parsing.docstrings import first_line, parse_docstring

GOOGLE = '''Fetch rows from the table.

    Rows are returned in primary key order.

    Args:
        table: Table to read.
        limit (int): Maximum rows to return.
            Zero means no limit.
        **options: Passed to the driver.

    Returns:
        The matching rows.

    Raises:
        KeyError: If the table does not exist.

    Example:
        >>> fetch("users", 2)
        [1, 2]
    '''

NUMPY = """Scale a vector.

Parameters
----------
vector : list of float
    Values to scale.
factor : float
    Multiplier.

Returns
-------
list of float
    The scaled values.
"""


def test_parse_docstring_google_sections() -> None:
    doc = parse_docstring(GOOGLE)

    assert doc.summary == "Fetch rows from the table."
    assert doc.description == "Rows are returned in primary key order."
    assert doc.args == (
        ("table", "Table to read."),
        ("limit", "Maximum rows to return. Zero means no limit."),
        ("**options", "Passed to the driver."),
    )
    assert doc.returns == "The matching rows."
    assert doc.raises == (("KeyError", "If the table does not exist."),)
    assert doc.examples == ('>>> fetch("users", 2)\n[1, 2]',)


def test_parse_docstring_numpy_sections() -> None:
    doc = parse_docstring(NUMPY)

    assert doc.summary == "Scale a vector."
    assert [name for name, _ in doc.args] == ["vector", "factor"]
    assert doc.arg("factor") == "Multiplier."
    assert doc.returns == "list of float The scaled values."


def test_parse_docstring_arg_lookup_ignores_star_prefix() -> None:
    doc = parse_docstring(GOOGLE)

    assert doc.arg("options") == "Passed to the driver."
    assert doc.arg("missing") is None


def test_parse_docstring_keeps_unknown_sections_in_description() -> None:
    doc = parse_docstring("Summary.\n\nNotes:\n    Something worth knowing.\n")

    assert doc.summary == "Summary."
    assert doc.description is not None
    assert "Notes:" in doc.description
    assert "Something worth knowing." in doc.description


def test_parse_docstring_leaves_rst_fields_unstructured() -> None:
    raw = "Connect.\n\n:param host: Host name.\n:returns: A connection.\n"

    doc = parse_docstring(raw)

    assert doc.args == ()
    assert doc.description is not None and ":param host:" in doc.description


def test_parse_docstring_handles_empty_text() -> None:
    assert parse_docstring("") == Docstring(raw="")
    assert parse_docstring("   \n  ") == Docstring(raw="   \n  ")


def test_parse_docstring_is_pure() -> None:
    assert parse_docstring(GOOGLE) == parse_docstring(GOOGLE)


def test_first_line_prefers_summary() -> None:
    assert first_line(parse_docstring("One.\nTwo.\n\nMore.")) == "One. Two."
    assert first_line(None) == ""
