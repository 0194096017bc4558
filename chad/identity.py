"""Project identity resolution for session windows.

Signals are consulted in a fixed priority order:

1. the caller-supplied slug, unless it is a known placeholder;
2. the working directory found in the window content, unless it is a home dir;
3. substring hints over the session file, project folder and content;
4. the ``unassigned`` sentinel.

Resolution never fails; an unresolved window still gets a stable slug.
"""
from __future__ import annotations

import logging

from chad.models import UNASSIGNED_SLUG, ProjectIdentity, SessionWindow
from chad.routing import is_home_path, route_path
from chad.routing_rules import DEFAULT_ROUTING_RULES, RoutingRules

logger = logging.getLogger("chad.identity")

SNIFF_CONTENT_CHARS = 5000


def normalize_slug(slug: str | None, rules: RoutingRules = DEFAULT_ROUTING_RULES) -> str | None:
    if not slug:
        return slug
    return rules.slug_aliases.get(slug, slug)


def is_low_trust_slug(slug: str | None, rules: RoutingRules = DEFAULT_ROUTING_RULES) -> bool:
    return bool(slug) and slug in rules.low_trust_slugs


def sniff_content(
    session_file: str | None,
    project_folder: str | None,
    content: str | None,
    rules: RoutingRules = DEFAULT_ROUTING_RULES,
) -> ProjectIdentity | None:
    haystack = " ".join(
        [session_file or "", project_folder or "", (content or "")[:SNIFF_CONTENT_CHARS]]
    ).lower()
    for needle, slug in rules.content_patterns:
        if needle in haystack:
            return ProjectIdentity(
                slug=slug,
                port=None,
                reason="content-derived",
                evidence=f"content:{needle}",
            )
    return None


def resolve_identity(
    window: SessionWindow,
    cwd: str | None,
    rules: RoutingRules = DEFAULT_ROUTING_RULES,
) -> ProjectIdentity:
    caller_slug = window.project_slug
    if caller_slug and not is_low_trust_slug(caller_slug, rules):
        return ProjectIdentity(
            slug=normalize_slug(caller_slug, rules),
            port=window.team_port,
            reason="trusted-label",
            evidence=f"label:{caller_slug}",
        )
    if caller_slug:
        logger.warning(
            "Ignoring low-trust transcript slug %s (session_file=%s)",
            caller_slug,
            window.session_file[:80],
        )

    if cwd and not is_home_path(cwd):
        routed = route_path(cwd)
        if routed is not None:
            return routed

    sniffed = sniff_content(window.session_file, window.project_folder, window.content, rules)
    if sniffed is not None:
        return sniffed

    logger.warning(
        "Slug unresolved (session_file=%s cwd=%s content_len=%s)",
        window.session_file[:80],
        (cwd or "")[:80],
        len(window.content),
    )
    return ProjectIdentity(slug=UNASSIGNED_SLUG, port=None, reason="unresolved")
