"""Results of extracting structured data from model text."""

from dataclasses import dataclass
from enum import StrEnum

AttributeBag = dict[str, object]


class ValueShape(StrEnum):
    """Top-level JSON shape of a parsed payload."""

    OBJECT = "object"
    ARRAY = "array"


class FailureKind(StrEnum):
    """Why no usable data could be extracted."""

    NO_STRUCTURED_DATA_FOUND = "no_structured_data_found"
    MALFORMED_PAYLOAD = "malformed_payload"
    EMPTY_OR_UNUSABLE_SHAPE = "empty_or_unusable_shape"


@dataclass(frozen=True)
class ParsedValue:
    """Key-normalized, flattened payload.

    An object payload holds exactly one bag; an array payload holds one bag
    per object element.
    """

    shape: ValueShape
    bags: list[AttributeBag]

    @property
    def bag(self) -> AttributeBag:
        """Return the single bag of an object payload."""
        if self.shape is not ValueShape.OBJECT:
            raise ValueError("Array payloads have no single bag")
        return self.bags[0]


@dataclass(frozen=True)
class ExtractionFailure:
    """Non-fatal extraction outcome meaning no usable data."""

    kind: FailureKind
    message: str
