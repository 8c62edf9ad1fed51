"""Tests for annotation interpretation."""

from __future__ import annotations

from docweave.models import (
    BackRef,
    CallableType,
    Concatenate,
    ForwardRef,
    Generic,
    Literal,
    Name,
    Opaque,
    OptionalType,
    UnionType,
)
from docweave.parsing.types import format_type, make_union, parse_annotation


def test_parse_annotation_builds_generic_tree() -> None:
    expr = parse_annotation("dict[str, list[int]]")

    assert expr == Generic(Name("dict"), (Name("str"), Generic(Name("list"), (Name("int"),))))


def test_parse_annotation_normalises_optional_forms() -> None:
    expected = OptionalType(Name("int"))

    assert parse_annotation("Optional[int]") == expected
    assert parse_annotation("int | None") == expected
    assert parse_annotation("Union[None, int]") == expected
    assert parse_annotation("typing.Optional[int]") == expected


def test_parse_annotation_flattens_and_deduplicates_unions() -> None:
    expr = parse_annotation("Union[int, Union[str, int], bytes]")

    assert expr == UnionType((Name("int"), Name("str"), Name("bytes")))


def test_parse_annotation_keeps_none_in_wider_unions() -> None:
    expr = parse_annotation("int | str | None")

    assert expr == UnionType((Name("int"), Name("str"), Name("None")))


def test_parse_annotation_handles_callable_shapes() -> None:
    assert parse_annotation("Callable[[int, str], bool]") == CallableType(
        (Name("int"), Name("str")), Name("bool")
    )
    assert parse_annotation("Callable[..., None]") == CallableType(None, Name("None"))
    assert parse_annotation("Callable[P, R]") == CallableType(Name("P"), Name("R"))
    assert parse_annotation("Callable[Concatenate[int, P], R]") == CallableType(
        Concatenate((Name("int"),), Name("P")), Name("R")
    )


def test_parse_annotation_keeps_literal_values_verbatim() -> None:
    assert parse_annotation("Literal['r', 'w', 1]") == Literal(("'r'", "'w'", "1"))


def test_parse_annotation_turns_strings_into_forward_refs() -> None:
    assert parse_annotation("'Node'") == ForwardRef("Node")
    assert parse_annotation("list['Node']") == Generic(Name("list"), (ForwardRef("Node"),))
    assert parse_annotation("'list[int]'") == Generic(Name("list"), (Name("int"),))


def test_parse_annotation_strips_annotated_metadata() -> None:
    assert parse_annotation("Annotated[int, Field(gt=0)]") == Name("int")


def test_parse_annotation_returns_opaque_for_unsupported_constructs() -> None:
    assert parse_annotation("int + str") == Opaque("int + str")
    assert parse_annotation("foo()") == Opaque("foo()")
    assert parse_annotation("list[") == Opaque("list[")
    assert parse_annotation("   ") == Opaque("   ")


def test_parse_annotation_is_deterministic() -> None:
    text = "Mapping[str, Callable[[int], Optional[list['Node']]]]"

    assert parse_annotation(text) == parse_annotation(text)


def test_make_union_with_single_member_collapses() -> None:
    assert make_union([Name("int"), Name("int")]) == Name("int")


def test_format_type_round_trips_readable_text() -> None:
    text = "dict[str, Callable[[int], Optional[Node]]]"

    assert format_type(parse_annotation(text)) == text


def test_format_type_routes_names_through_hook() -> None:
    expr = parse_annotation("list[Node] | None")

    rendered = format_type(expr, lambda name: f"<{name}>")

    assert rendered == "Optional[<list>[<Node>]]"


def test_format_type_marks_back_references() -> None:
    expr = Generic(Name("list"), (BackRef("Json"),))

    assert format_type(expr) == "list[↺ Json]"


def test_format_type_passes_opaque_text_through() -> None:
    assert format_type(Opaque("int + str")) == "int + str"
    assert format_type(None) == ""
