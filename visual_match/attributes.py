"""
Structured visual attributes extracted from a product photo.

The vision model is asked for a JSON object; its answer is parsed in two
stages. The first stage (parse_json_object) must find a JSON object in
the raw text and is allowed to fail. The second stage (coerce_attributes)
turns whatever fields are present into a VisualAttributes and cannot
fail: missing or malformed fields become empty defaults.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

logger = logging.getLogger(__name__)

LIST_FIELDS = ("objects", "colors", "materials", "categories")
TEXT_FIELDS = ("description", "style", "brand")


@dataclass(frozen=True)
class VisualAttributes:
    """What the vision model saw in an uploaded image."""

    objects: Tuple[str, ...] = ()
    colors: Tuple[str, ...] = ()
    materials: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()
    description: str = ""
    style: str = ""
    brand: str = ""

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in LIST_FIELDS + TEXT_FIELDS)

    def fuzzy_query(self) -> str:
        """Description followed by every object, category, color and material term."""
        parts = [self.description]
        parts.extend(self.objects)
        parts.extend(self.categories)
        parts.extend(self.colors)
        parts.extend(self.materials)
        return " ".join(parts).strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "objects": list(self.objects),
            "colors": list(self.colors),
            "materials": list(self.materials),
            "categories": list(self.categories),
            "description": self.description,
            "style": self.style,
            "brand": self.brand,
        }


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the top-level JSON object out of a model response.

    Accepts bare JSON, JSON wrapped in a markdown code fence, or JSON
    surrounded by stray prose (the outermost {...} block is tried).

    Args:
        text: Raw message content returned by the vision model.

    Returns:
        The parsed object as a dict.

    Raises:
        ValueError: If the text is empty or holds no JSON object.
    """
    raw = (text or "").strip()
    if not raw:
        raise ValueError("Vision model returned an empty response")

    if raw.startswith("```"):
        first_newline = raw.find("\n")
        last_fence = raw.rfind("```")
        if first_newline != -1 and last_fence > first_newline:
            raw = raw[first_newline:last_fence].strip()

    candidates = [raw]
    start = raw.find("{")
    end = raw.rfind("}")
    if start != -1 and end > start:
        candidates.append(raw[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError(f"Could not parse JSON object from vision response: {raw[:200]}")


def _coerce_terms(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(
        item.strip() for item in value
        if isinstance(item, str) and item.strip()
    )


def _coerce_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    # bool is an int subclass; "True" is not a useful brand
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def coerce_attributes(data: Mapping[str, Any]) -> VisualAttributes:
    """
    Build VisualAttributes from a parsed response, defaulting bad fields.

    List fields accept a list of strings or a single string. Text fields
    accept strings (numbers are stringified). Anything else, including
    null, becomes an empty tuple or empty string.
    """
    # style and brand are optional in the prompt, so their absence is normal
    missing = [name for name in LIST_FIELDS + ("description",) if name not in data]
    if missing:
        logger.warning(f"Vision response missing fields, using defaults: {', '.join(missing)}")

    return VisualAttributes(
        objects=_coerce_terms(data.get("objects")),
        colors=_coerce_terms(data.get("colors")),
        materials=_coerce_terms(data.get("materials")),
        categories=_coerce_terms(data.get("categories")),
        description=_coerce_text(data.get("description")),
        style=_coerce_text(data.get("style")),
        brand=_coerce_text(data.get("brand")),
    )
