from collections.abc import Sequence

from chunkexec.errors import InvalidChunk


# Templates reference this name; it is part of the template contract.
BINDING_NAME = "ids"
QUOTE = "'"


def render_identifiers(identifiers: Sequence[str]) -> str:
    # No escaping: identifiers are embedded as-is.
    return ",".join(f"{QUOTE}{identifier}{QUOTE}" for identifier in identifiers)


def compose(template: str, identifiers: Sequence[str]) -> str:
    if not identifiers:
        raise InvalidChunk("chunk must contain at least one identifier")

    declaration = f"List<Id> {BINDING_NAME} = new List<Id>{{{render_identifiers(identifiers)}}};"
    return f"{declaration}\n{template}"
