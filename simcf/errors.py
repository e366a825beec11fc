"""Error taxonomy shared by the stores, correlation matrices and engines."""

from __future__ import annotations


class UnknownEntityError(KeyError):
    """A user or item ID above the highest ID registered so far (or negative)."""

    def __init__(self, entity: str, entity_id: int) -> None:
        self.entity = str(entity)
        self.entity_id = int(entity_id)
        super().__init__(f"Unknown {self.entity}: {self.entity_id}")

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidEntityTypeError(ValueError):
    """Entity-type discriminator is neither USER nor ITEM."""


class MalformedRecordError(ValueError):
    """An interaction/rating line could not be parsed."""

    def __init__(self, line_number: int, line: str, reason: str) -> None:
        self.line_number = int(line_number)
        self.line = line
        super().__init__(f"line {self.line_number}: {reason}: {line!r}")


class DegenerateEnsembleError(ValueError):
    """The ensemble weights sum to zero, so no normalised prediction exists."""
