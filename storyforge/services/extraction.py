"""Turn raw model output into structured story records.

Two policies live here side by side. Full records (a freshly generated
character, plot or setting) are *repaired*: missing required fields are
back-filled so callers always get a complete record once the JSON parsed.
Expansions are partial updates and are *rejected* when the focus area's
fields are missing, because back-filling would overwrite real data with
placeholders.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

LOGGER = logging.getLogger(__name__)

PLACEHOLDER = "Not specified"

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class ExtractionSchema:
    required: Tuple[str, ...]
    arrays: Tuple[str, ...] = ()
    collections: Tuple[str, ...] = ()


SCHEMAS: Dict[str, ExtractionSchema] = {
    "character": ExtractionSchema(
        required=(
            "name",
            "shortDescription",
            "background",
            "physicalTraits",
            "personalityTraits",
            "goals",
            "fears",
            "skills",
            "voice",
            "role",
        ),
        arrays=("physicalTraits", "personalityTraits", "goals", "fears", "skills"),
        collections=("relationships",),
    ),
    "plot": ExtractionSchema(
        required=("title", "summary", "conflict", "plotPoints", "themes"),
        arrays=("plotPoints", "themes"),
        collections=("subplots",),
    ),
    "setting": ExtractionSchema(
        required=("name", "description", "atmosphere", "keyFeatures", "sensoryDetails"),
        arrays=("keyFeatures", "sensoryDetails"),
        collections=("landmarks",),
    ),
}

# (kind, fields): "any" needs at least one field filled in, "list" needs the
# field to be a JSON array.
EXPANSION_RULES: Dict[str, Dict[str, Tuple[str, Tuple[str, ...]]]] = {
    "character": {
        "background": ("any", ("background", "backstory")),
        "relationships": ("list", ("relationships",)),
        "development": ("any", ("arc",)),
        "details": ("any", ("physicalTraits", "personalityTraits", "voice")),
    },
    "setting": {
        "background": ("any", ("history", "background")),
        "relationships": ("list", ("connections",)),
        "development": ("any", ("changes", "arc")),
        "details": ("any", ("sensoryDetails", "keyFeatures", "atmosphere")),
    },
    "plot": {
        "background": ("any", ("backstory", "background")),
        "relationships": ("list", ("connections",)),
        "development": ("any", ("turningPoints", "arc")),
        "details": ("any", ("scenes",)),
    },
}


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def parse_json_block(raw_text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse the widest ``{...}`` span in ``raw_text``; ``None`` if there is none or it is invalid."""

    if not isinstance(raw_text, str):
        return None
    match = _JSON_BLOCK.search(raw_text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except (ValueError, RecursionError):
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def backfill_required(record: Dict[str, Any], schema: ExtractionSchema) -> Dict[str, Any]:
    """Fill every missing required field with a placeholder of the right shape."""

    repaired = dict(record)
    missing = [name for name in schema.required if _is_missing(repaired.get(name))]
    for name in missing:
        repaired[name] = [PLACEHOLDER] if name in schema.arrays else PLACEHOLDER
    if missing:
        LOGGER.warning("Back-filled missing fields in model output: %s", ", ".join(missing))
    return repaired


def normalize_array_fields(record: Dict[str, Any], schema: ExtractionSchema) -> Dict[str, Any]:
    normalized = dict(record)
    for name in schema.arrays:
        value = normalized.get(name)
        if value is None:
            normalized[name] = []
        elif isinstance(value, str):
            normalized[name] = [part.strip() for part in value.split(",") if part.strip()]
        elif isinstance(value, list):
            continue
        else:
            normalized[name] = [str(value)]
    for name in schema.collections:
        value = normalized.get(name)
        if value is None:
            normalized[name] = []
        elif not isinstance(value, list):
            normalized[name] = [value]
    return normalized


def stamp_metadata(record: Dict[str, Any]) -> Dict[str, Any]:
    stamped = dict(record)
    stamped["aiGenerated"] = True
    stamped["createdAt"] = datetime.now(timezone.utc).isoformat()
    stamped["editedByUser"] = False
    return stamped


def extract(raw_text: Optional[str], task: str) -> Optional[Dict[str, Any]]:
    """Structure a full-record generation, or return ``None`` when no JSON object can be parsed.

    Tasks without a schema (chapter prose, editorial feedback) always return
    ``None``: their output is consumed as plain text.
    """

    schema = SCHEMAS.get(task)
    if schema is None:
        return None
    parsed = parse_json_block(raw_text)
    if parsed is None:
        return None
    record = backfill_required(parsed, schema)
    record = normalize_array_fields(record, schema)
    return stamp_metadata(record)


_TOP_HEADING = re.compile(r"^#(?!#)[ \t]*(\S.*?)\s*$", re.MULTILINE)
_BULLET = re.compile(r"^[ \t]*[-*+][ \t]+(.+?)[ \t]*$", re.MULTILINE)


def _section(raw_text: str, heading: str) -> Optional[str]:
    pattern = re.compile(
        rf"^##[ \t]+{heading}[ \t]*\r?\n(.*?)(?=^#|\Z)",
        re.MULTILINE | re.DOTALL | re.IGNORECASE,
    )
    match = pattern.search(raw_text)
    if not match:
        return None
    body = match.group(1).strip()
    return body or None


def _bullets(body: Optional[str]) -> list:
    if not body:
        return []
    return [item.strip() for item in _BULLET.findall(body) if item.strip()]


def extract_from_markdown(raw_text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Recover a partial character from markdown headings.

    Only matched sections produce scalar fields; array fields start empty.
    Returns ``None`` when nothing recognisable is found.
    """

    if not isinstance(raw_text, str) or not raw_text.strip():
        return None

    found: Dict[str, Any] = {}
    heading = _TOP_HEADING.search(raw_text)
    if heading:
        found["name"] = heading.group(1).strip()
    description = _section(raw_text, "Description")
    if description:
        found["shortDescription"] = description
    background = _section(raw_text, "Background")
    if background:
        found["background"] = background
    physical = _bullets(_section(raw_text, r"(?:Physical[ \t]+)?Traits"))
    if physical:
        found["physicalTraits"] = physical
    personality = _bullets(_section(raw_text, r"Personality(?:[ \t]+Traits)?"))
    if personality:
        found["personalityTraits"] = personality

    if not found:
        return None

    schema = SCHEMAS["character"]
    record: Dict[str, Any] = {name: [] for name in schema.arrays + schema.collections}
    record.update(found)
    return record


def extract_expansion(
    raw_text: Optional[str],
    focus: str,
    entity_type: str = "character",
) -> Optional[Dict[str, Any]]:
    """Parse an expansion response, rejecting it when the focus area's fields are absent."""

    rule = EXPANSION_RULES.get(entity_type, {}).get(focus)
    if rule is None:
        return None
    parsed = parse_json_block(raw_text)
    if parsed is None:
        return None

    kind, fields = rule
    if kind == "list":
        if not all(isinstance(parsed.get(name), list) for name in fields):
            return None
    elif not any(not _is_missing(parsed.get(name)) for name in fields):
        return None
    return parsed
