# src/artifacts/allure.py — v1
"""Rewrite Allure attachment sources to paths valid in the local layout.

The service records attachment sources relative to its own storage. Once
downloaded, logs and videos live two levels above report/allure-results.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

ALLURE_RESULTS_DIR = "report/allure-results"
_RELOCATED_MARKERS = ("logs/omni", "video/omni")


def relocate_source(source: str) -> str | None:
    """New attachment source, or None when the source is left alone."""
    for marker in _RELOCATED_MARKERS:
        index = source.find(marker)
        if index >= 0:
            return f"../../{source[index:]}"
    return None


def patch_allure_file(path: Path) -> bool:
    """Patch one result file in place. Returns True when it was rewritten."""
    document = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(document, dict):
        return False
    attachments = document.get("attachments")
    if not isinstance(attachments, list):
        return False

    changed = False
    for attachment in attachments:
        if not isinstance(attachment, dict):
            continue
        source = attachment.get("source")
        if not isinstance(source, str):
            continue
        relocated = relocate_source(source)
        if relocated is not None and relocated != source:
            attachment["source"] = relocated
            changed = True

    if changed:
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return changed


def patch_allure_paths(output: Path) -> int:
    """Patch every JSON result under <output>/report/allure-results.

    Files that are not valid JSON are logged and skipped. Returns the number
    of rewritten files.
    """
    results_dir = Path(output) / ALLURE_RESULTS_DIR
    if not results_dir.is_dir():
        logger.debug("No Allure results at %s", results_dir)
        return 0

    patched = 0
    for path in sorted(results_dir.glob("*.json")):
        if not path.is_file():
            continue
        try:
            if patch_allure_file(path):
                patched += 1
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable Allure result %s: %s", path, exc)
    logger.info("Patched %d Allure result file(s)", patched)
    return patched
