"""Turn loosely structured model text into flattened attribute bags."""

import json
import logging
import re
from dataclasses import dataclass

from meal_scan.domain.extraction import (
    AttributeBag,
    ExtractionFailure,
    FailureKind,
    ParsedValue,
    ValueShape,
)

DEFAULT_MAX_DEPTH = 16

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\r?\n?([\s\S]*?)```")

_logger = logging.getLogger(__name__)


@dataclass
class Canonicalizer:
    """Extract JSON from model output and normalize its keys and nesting."""

    max_depth: int = DEFAULT_MAX_DEPTH

    def extract(self, text: str | None) -> ParsedValue | ExtractionFailure:
        """Parse model text into a flattened value or a typed failure."""
        candidates = _find_candidates(text or "")
        if not candidates:
            return self._fail(
                FailureKind.NO_STRUCTURED_DATA_FOUND,
                "Model output does not contain a JSON payload",
            )

        error: Exception | None = None
        for candidate in candidates:
            try:
                parsed = json.loads(candidate)
                break
            except (json.JSONDecodeError, RecursionError) as exc:
                error = exc
        else:
            return self._fail(FailureKind.MALFORMED_PAYLOAD, f"Invalid JSON: {error}")

        if isinstance(parsed, dict):
            if not parsed:
                return self._fail(
                    FailureKind.EMPTY_OR_UNUSABLE_SHAPE, "JSON object is empty"
                )
            return ParsedValue(shape=ValueShape.OBJECT, bags=[self.flatten(parsed)])

        if isinstance(parsed, list):
            objects = [element for element in parsed if isinstance(element, dict)]
            if not objects:
                return self._fail(
                    FailureKind.EMPTY_OR_UNUSABLE_SHAPE,
                    "JSON array contains no objects",
                )
            return ParsedValue(
                shape=ValueShape.ARRAY,
                bags=[self.flatten(element) for element in objects],
            )

        return self._fail(
            FailureKind.EMPTY_OR_UNUSABLE_SHAPE,
            f"Unsupported JSON root type: {type(parsed).__name__}",
        )

    def flatten(self, obj: dict[str, object]) -> AttributeBag:
        """Normalize keys and merge nested objects into one level."""
        return self._flatten(self._normalize(obj, 0), 0)

    def _normalize(self, value: object, depth: int) -> object:
        if isinstance(value, dict):
            if depth >= self.max_depth:
                return {}
            return {
                normalize_key(key): self._normalize(child, depth + 1)
                for key, child in value.items()
            }
        if isinstance(value, list):
            if depth >= self.max_depth:
                return []
            return [self._normalize(child, depth + 1) for child in value]
        return value

    def _flatten(self, obj: dict[str, object], depth: int) -> AttributeBag:
        flat: AttributeBag = {}
        for key, value in obj.items():
            if isinstance(value, dict):
                if depth + 1 < self.max_depth:
                    flat.update(self._flatten(value, depth + 1))
                continue
            flat[key] = value
        return flat

    @staticmethod
    def _fail(kind: FailureKind, message: str) -> ExtractionFailure:
        _logger.warning("Extraction failed (%s): %s", kind.value, message)
        return ExtractionFailure(kind=kind, message=message)


def normalize_key(key: str) -> str:
    """Lowercase a key and join its words with underscores."""
    return "_".join(str(key).strip().lower().split())


def _find_candidates(text: str) -> list[str]:
    """Return the substrings that may hold the JSON payload, best first.

    A fenced block wins. Otherwise the span from the first "{" to the last
    "}" is used, preceded by an enclosing "[...]" span that is tried first
    and only kept when it parses.
    """
    fence = _FENCE_RE.search(text)
    if fence:
        inner = fence.group(1).strip()
        if inner:
            return [inner]

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return []

    candidates = []
    array_start = text.find("[")
    array_end = text.rfind("]")
    if -1 < array_start < start and array_end > end:
        candidates.append(text[array_start : array_end + 1])
    candidates.append(text[start : end + 1])
    return candidates
