"""JSON extraction: linearizes a key/value tree into indented lines.

    {"name": "docvec", "tags": ["a", "b"], "owner": {"id": 7}}

becomes::

    name: docvec
    tags:
      [0]: a
      [1]: b
    owner:
      id: 7
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from docvec.services.ingestion.source_processors.base import SourceProcessor, read_text_file
from docvec.utils.errors import ExtractionError

_INDENT = "  "


def _scalar(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def linearize(value: Any, depth: int = 0) -> list[str]:
    """Render a parsed JSON value as ``key: value`` lines."""
    pad = _INDENT * depth
    if isinstance(value, dict):
        items = [(str(k), v) for k, v in value.items()]
    elif isinstance(value, list):
        items = [(f"[{i}]", v) for i, v in enumerate(value)]
    else:
        return [f"{pad}{_scalar(value)}"]

    lines: list[str] = []
    for key, child in items:
        if isinstance(child, (dict, list)) and child:
            lines.append(f"{pad}{key}:")
            lines.extend(linearize(child, depth + 1))
        elif isinstance(child, (dict, list)):
            lines.append(f"{pad}{key}: {'{}' if isinstance(child, dict) else '[]'}")
        else:
            lines.append(f"{pad}{key}: {_scalar(child)}")
    return lines


class JSONProcessor(SourceProcessor):
    name = "json"

    def extract(self, file_path: Path) -> str:
        raw = read_text_file(file_path, self.name)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ExtractionError(
                message=f"Invalid JSON in {file_path.name}: {exc.msg} (line {exc.lineno})",
                provider_name=self.name,
            ) from exc
        except RecursionError as exc:
            raise ExtractionError(
                message=f"JSON in {file_path.name} is nested too deeply to parse",
                provider_name=self.name,
            ) from exc
        try:
            return "\n".join(linearize(data))
        except RecursionError as exc:
            raise ExtractionError(
                message=f"JSON in {file_path.name} is nested too deeply to render",
                provider_name=self.name,
            ) from exc
