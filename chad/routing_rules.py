"""Hand-maintained routing tables used by identity resolution.

The built-in tables can be replaced from a YAML file (``CHAD_ROUTING_RULES_PATH``)::

    low_trust_slugs: [ai-team, terminal, unassigned]
    slug_aliases:
      ai-chad: ai-chad-5401
    content_patterns:
      - {match: kodiack-dashboard, slug: kodiack-dashboard-5500}

Each top-level key present replaces the corresponding built-in table; missing
keys keep the defaults.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from chad import config

logger = logging.getLogger("chad.identity")

_DEFAULT_LOW_TRUST_SLUGS = frozenset(
    {"ai-team", "terminal", "unassigned", "unknown", "default", "studio", "www"}
)

_DEFAULT_SLUG_ALIASES = {
    "ai-chad": "ai-chad-5401",
    "ai-jen": "ai-jen-5402",
    "ai-susan": "ai-susan-5403",
    "ai-clair": "ai-clair-5404",
    "ai-mike": "ai-mike-5405",
    "ai-tiffany": "ai-tiffany-5406",
    "ai-ryan": "ai-ryan-5407",
    "ai-jason": "ai-jason-5408",
    "kodiack-dashboard": "kodiack-dashboard-5500",
    "terminal-server": "terminal-server-5400",
}

# Order matters: first substring hit wins.
_DEFAULT_CONTENT_PATTERNS = (
    ("kodiack-dashboard", "kodiack-dashboard-5500"),
    ("dashboard-5500", "kodiack-dashboard-5500"),
    ("ai-jen", "ai-jen-5402"),
    ("ai-susan", "ai-susan-5403"),
    ("ai-chad", "ai-chad-5401"),
    ("ai-jason", "ai-jason-5408"),
    ("terminal-server", "terminal-server-5400"),
    ("nextbid", "nextbid"),
    ("kodiack-studio", "kodiack-studio"),
)


@dataclass(frozen=True)
class RoutingRules:
    low_trust_slugs: frozenset[str] = _DEFAULT_LOW_TRUST_SLUGS
    slug_aliases: dict[str, str] = field(default_factory=lambda: dict(_DEFAULT_SLUG_ALIASES))
    content_patterns: tuple[tuple[str, str], ...] = _DEFAULT_CONTENT_PATTERNS


DEFAULT_ROUTING_RULES = RoutingRules()


def _parse_low_trust(value: Any) -> frozenset[str]:
    if not isinstance(value, list):
        raise ValueError("low_trust_slugs must be a list")
    return frozenset(str(item).strip() for item in value if str(item).strip())


def _parse_aliases(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        raise ValueError("slug_aliases must be a mapping")
    return {str(k).strip(): str(v).strip() for k, v in value.items() if str(k).strip()}


def _parse_patterns(value: Any) -> tuple[tuple[str, str], ...]:
    if not isinstance(value, list):
        raise ValueError("content_patterns must be a list")
    patterns: list[tuple[str, str]] = []
    for entry in value:
        if not isinstance(entry, dict) or not entry.get("match") or not entry.get("slug"):
            raise ValueError(f"Invalid content pattern entry: {entry!r}")
        patterns.append((str(entry["match"]).strip().lower(), str(entry["slug"]).strip()))
    return tuple(patterns)


def load_routing_rules(path: str | Path | None) -> RoutingRules:
    """Load routing tables from YAML, falling back to the built-in tables."""
    if not path:
        return DEFAULT_ROUTING_RULES
    rules_path = Path(path).expanduser()
    if not rules_path.exists():
        logger.warning("Routing rules file not found, using built-in tables: %s", rules_path)
        return DEFAULT_ROUTING_RULES

    try:
        payload = yaml.safe_load(rules_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Routing rules file is not valid YAML: {rules_path}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"Routing rules file must contain a mapping: {rules_path}")

    rules = RoutingRules(
        low_trust_slugs=(
            _parse_low_trust(payload["low_trust_slugs"])
            if "low_trust_slugs" in payload else DEFAULT_ROUTING_RULES.low_trust_slugs
        ),
        slug_aliases=(
            _parse_aliases(payload["slug_aliases"])
            if "slug_aliases" in payload else dict(DEFAULT_ROUTING_RULES.slug_aliases)
        ),
        content_patterns=(
            _parse_patterns(payload["content_patterns"])
            if "content_patterns" in payload else DEFAULT_ROUTING_RULES.content_patterns
        ),
    )
    logger.info(
        "Loaded routing rules from %s (low_trust=%s aliases=%s patterns=%s)",
        rules_path,
        len(rules.low_trust_slugs),
        len(rules.slug_aliases),
        len(rules.content_patterns),
    )
    return rules


@lru_cache(maxsize=1)
def get_routing_rules() -> RoutingRules:
    return load_routing_rules(config.ROUTING_RULES_PATH)
