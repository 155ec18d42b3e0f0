import pytest

from chunkexec.composer import BINDING_NAME, compose, render_identifiers
from chunkexec.errors import InvalidChunk
from chunkexec.record_source import iter_chunks


def test_compose_prepends_declaration_to_template() -> None:
    script = compose("delete SOMETHING;", ["a", "b"])

    assert script == f"List<Id> {BINDING_NAME} = new List<Id>{{'a','b'}};\ndelete SOMETHING;"


def test_compose_keeps_every_identifier_once_in_order() -> None:
    identifiers = ["001C", "001A", "001B"]

    declaration = compose("System.debug(ids);", identifiers).split("\n", 1)[0]

    assert "{'001C','001A','001B'}" in declaration
    for identifier in identifiers:
        assert declaration.count(f"'{identifier}'") == 1


def test_compose_uses_template_verbatim() -> None:
    template = "for (Id i : ids) {\n  System.debug(i);\n}\n"

    assert compose(template, ["x"]).endswith(template)


def test_compose_rejects_empty_chunk() -> None:
    with pytest.raises(InvalidChunk):
        compose("delete SOMETHING;", [])


def test_identifiers_with_quotes_are_not_escaped() -> None:
    assert render_identifiers(["a'b"]) == "'a'b'"


def test_iter_chunks_splits_in_order() -> None:
    assert list(iter_chunks(["a", "b", "c", "d", "e"], 2)) == [["a", "b"], ["c", "d"], ["e"]]
    assert list(iter_chunks([], 3)) == []


def test_iter_chunks_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        list(iter_chunks(["a"], 0))
