"""Conditional branch evaluation.

Evaluation is two separable steps:

- extract: read a raw value from the condition's source (a file, or a key of
  the run's metadata)
- classify: turn that raw value into a branch key with the optional pattern

`None` stands for "no match". Nothing here is cached: every call looks at the
filesystem as it is at the moment of the call, which is how an agent or a human
signals progress between transitions.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .models import Condition

logger = logging.getLogger(__name__)

FILE_EXISTS_TRUE = "true"
FILE_EXISTS_FALSE = "false"


@dataclass(frozen=True, slots=True)
class ConditionContext:
    """Inputs a condition may consult besides the filesystem."""

    metadata: Mapping[str, Any] = field(default_factory=dict)


def strip_line_terminator(text: str) -> str:
    """Remove a single trailing line terminator, if present."""

    if text.endswith("\r\n"):
        return text[:-2]
    if text.endswith("\n") or text.endswith("\r"):
        return text[:-1]
    return text


def stringify_metadata_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, list | tuple | dict):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def classify(raw: str, pattern: str | None) -> str | None:
    """Classify a raw value into a branch key.

    Without a pattern the raw value is the key. With a pattern, the first
    capturing group wins when it took part in the match, otherwise the whole
    matched text is used. The pattern's own anchors decide how much of the
    value must match.
    """

    if pattern is None:
        return raw
    match = re.search(pattern, raw)
    if match is None:
        return None
    if match.re.groups and match.group(1) is not None:
        return match.group(1)
    return match.group(0)


def file_is_readable(path: Path) -> bool:
    try:
        return path.is_file() and os.access(path, os.R_OK)
    except OSError:
        return False


def read_file_value(path: Path) -> str | None:
    """Read a file for classification; any read failure means "absent"."""

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Condition source unreadable", extra={"path": str(path), "error": str(e)})
        return None
    return strip_line_terminator(text)


def extract(condition: Condition, context: ConditionContext) -> str | None:
    """Return the raw value a `file_content`/`metadata_value` condition classifies."""

    if condition.type == "file_content":
        return read_file_value(Path(condition.source))
    if condition.type == "metadata_value":
        if condition.source not in context.metadata:
            return None
        return stringify_metadata_value(context.metadata[condition.source])
    raise ValueError(f"Condition type {condition.type!r} has no extractable value")


def evaluate(condition: Condition, context: ConditionContext) -> str | None:
    """Evaluate a condition to a branch key, or `None` when nothing matched."""

    if condition.type == "file_exists":
        exists = file_is_readable(Path(condition.source))
        return FILE_EXISTS_TRUE if exists else FILE_EXISTS_FALSE

    raw = extract(condition, context)
    if raw is None:
        return None
    return classify(raw, condition.pattern)
