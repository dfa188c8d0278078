# src/reporting/result_file.py — v1
"""Machine-readable result file: RunStarted or RunFinished as JSON or YAML."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import yaml

from marathon_cloud.core.errors import OpenFileFailure, UnsupportedResultFormat
from marathon_cloud.core.models import RunFinished, RunStarted

logger = logging.getLogger(__name__)

_JSON_SUFFIXES = {".json", ""}
_YAML_SUFFIXES = {".yaml", ".yml"}


def result_format(path: Path) -> str:
    """Return "json" or "yaml" from the extension; no extension means json.

    Raises:
        UnsupportedResultFormat: For any other extension.
    """
    suffix = Path(path).suffix.lower()
    if suffix in _JSON_SUFFIXES:
        return "json"
    if suffix in _YAML_SUFFIXES:
        return "yaml"
    raise UnsupportedResultFormat(Path(path))


def render_event(event: RunStarted | RunFinished, fmt: str) -> str:
    data = event.model_dump(mode="json")
    if fmt == "json":
        return json.dumps(data, indent=2) + "\n"
    return yaml.safe_dump(data, sort_keys=False)


def write_result_file(path: Path, event: RunStarted | RunFinished) -> None:
    """Serialize the reported event to `path`, creating parent directories.

    Raises:
        UnsupportedResultFormat: If the extension is not json/yaml/yml.
        OpenFileFailure: If the file cannot be written.
    """
    path = Path(path)
    content = render_event(event, result_format(path))
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise OpenFileFailure(path) from exc
    logger.debug("Wrote result file %s", path)
