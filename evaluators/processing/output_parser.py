"""
Output parser - turn raw model text into a list of loosely-typed records.

Parsing is a separate fallible stage: the result is a tagged ParseResult and
nothing here raises or logs. Field-level trust is established later by the
record filter.
"""
import json
import re

from evaluators.models import ParseResult

LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
TRAILING_FENCE = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove one leading ``` / ```json fence and one trailing fence, if present."""
    return TRAILING_FENCE.sub("", LEADING_FENCE.sub("", text))


class OutputParser:
    """
    Parse model output that is supposed to be a JSON array.

    Models are told not to wrap output in markdown fences but sometimes do,
    so a single surrounding fence is tolerated. Anything else that is not a
    JSON array is a parse failure.
    """

    def parse(self, raw_text: object) -> ParseResult:
        """
        Parse raw model output.

        Args:
            raw_text: Model output; non-string values are stringified

        Returns:
            ParseResult with the parsed list, or with an error description
        """
        text = raw_text if isinstance(raw_text, str) else str(raw_text)
        cleaned = strip_code_fences(text.strip())

        if not cleaned:
            return ParseResult.failure("empty model output")

        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError as e:
            return ParseResult.failure(f"invalid JSON: {e.msg} at position {e.pos}")
        except (ValueError, RecursionError) as e:
            # Oversized integer literals and pathological nesting
            return ParseResult.failure(f"unparseable JSON: {type(e).__name__}: {e}")

        if not isinstance(parsed, list):
            return ParseResult.failure(f"expected a JSON array, got {type(parsed).__name__}")

        return ParseResult.success(parsed)
