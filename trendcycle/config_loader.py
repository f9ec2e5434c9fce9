"""
Load ``config/sources.yaml`` and ``config/policy.yaml`` with optional env overrides.
"""
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List

import yaml

from trendcycle.classifier import Policy

logger = logging.getLogger(__name__)

# ${KEY} or ${KEY:-fallback}
_ENV_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*))?\}")
POLICY_THRESHOLDS = ("hot_threshold", "new_minutes", "heat_floor")


def _read_yaml(path: Path, label: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        logger.warning("%s not found at %s", label, config_path)
        return {}
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        logger.warning("%s at %s is not a mapping; ignoring it", label, config_path)
        return {}
    return _expand_env(data)


def load_sources_config(path: Path) -> Dict[str, Any]:
    return _read_yaml(path, "sources.yaml")


def load_source_entries(path: Path) -> List[Dict[str, Any]]:
    """The ``sources`` list of ``sources.yaml``, minus entries switched off with ``enabled: false``."""
    entries = load_sources_config(path).get("sources") or []
    if not isinstance(entries, list):
        logger.warning("'sources' in %s must be a list", path)
        return []
    return [entry for entry in entries if not (isinstance(entry, dict) and entry.get("enabled") is False)]


def load_policy(path: Path) -> Policy:
    """
    Build the classifier policy from ``policy.yaml``.

    A missing file gives the built-in default policy (no vocabulary, default
    thresholds). Invalid threshold values are logged and left at their default.
    """
    data = _read_yaml(path, "policy.yaml")
    thresholds: Dict[str, Any] = {}
    for key in POLICY_THRESHOLDS:
        if data.get(key) is None:
            continue
        try:
            thresholds[key] = int(data[key])
        except (TypeError, ValueError):
            logger.warning("Invalid %s=%r in policy; using default", key, data[key])
    if "case_sensitive" in data:
        thresholds["case_sensitive"] = bool(data["case_sensitive"])
    return Policy.build(
        forbidden_terms=data.get("forbidden_terms") or (),
        sensitive_terms=data.get("sensitive_terms") or (),
        **thresholds,
    )


def _expand_env(data: Dict[str, Any]) -> Dict[str, Any]:
    def replace(value: Any) -> Any:
        if isinstance(value, str):
            match = _ENV_RE.fullmatch(value.strip())
            if match:
                return os.getenv(match.group(1)) or (match.group(2) or "")
            return value
        if isinstance(value, dict):
            return {k: replace(v) for k, v in value.items()}
        if isinstance(value, list):
            return [replace(item) for item in value]
        return value

    return replace(data)  # type: ignore[return-value]
