"""Reading workflow documents and trigger payloads from the command line."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def _load_document(path: Path) -> Dict[str, Any]:
    """Load a workflow definition from a JSON or YAML file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a workflow object")
    return data


def _parse_payload(raw: Optional[str]) -> Dict[str, Any]:
    """Parse ``--data``: inline JSON, or ``@file.json`` to read it from disk."""
    if not raw:
        return {}
    if raw.startswith("@"):
        raw = Path(raw[1:]).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Trigger data must be a JSON object")
    return data
