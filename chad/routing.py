"""Working-directory extraction and path-based project routing."""
from __future__ import annotations

import re
from typing import Callable, Optional

from chad.models import ProjectIdentity

_CWD_PATTERN = re.compile(r'"cwd"\s*:\s*"([^"]+)"')
# slug-port token, e.g. "ai-chad-5401"; a longer digit run is not a port
_SLUG_PORT_PATTERN = re.compile(r"([a-z0-9-]+)-(\d{4,5})(?!\d)")
_STUDIO_PATTERN = re.compile(r"studio/([^/]+)")
_PROJECTS_PATTERN = re.compile(r"projects/([^/]+)")
_WINDOWS_USERS_PATTERN = re.compile(r"^[a-z]:[\\/]users[\\/]")

MIN_PORT = 4000
MAX_PORT = 9999

PathRule = Callable[[str], Optional[ProjectIdentity]]


def extract_cwd(content: str | None) -> str | None:
    """Return the last ``"cwd": "<path>"`` value in ``content``, forward-slashed."""
    if not content:
        return None
    matches = _CWD_PATTERN.findall(content)
    if not matches:
        return None
    return matches[-1].replace("\\\\", "/").replace("\\", "/")


def normalize_path(path: str) -> str:
    return path.replace("\\", "/").lower()


def is_home_path(path: str | None) -> bool:
    """Personal/home directories carry no project signal."""
    if not path:
        return False
    lowered = path.lower()
    return (
        "/home/" in lowered
        or "/root/" in lowered
        or lowered.endswith("/root")
        or "\\users\\" in lowered
        or bool(_WINDOWS_USERS_PATTERN.match(lowered))
    )


def _slug_port_rule(normalized: str) -> ProjectIdentity | None:
    for match in _SLUG_PORT_PATTERN.finditer(normalized):
        port = int(match.group(2))
        if MIN_PORT <= port <= MAX_PORT:
            return ProjectIdentity(
                slug=f"{match.group(1)}-{match.group(2)}",
                port=port,
                reason="path-derived",
            )
    return None


def _segment_rule(pattern: re.Pattern[str]) -> PathRule:
    def _rule(normalized: str) -> ProjectIdentity | None:
        match = pattern.search(normalized)
        if not match:
            return None
        return ProjectIdentity(slug=match.group(1), port=None, reason="path-derived")
    return _rule


PATH_RULES: tuple[PathRule, ...] = (
    _slug_port_rule,
    _segment_rule(_STUDIO_PATTERN),
    _segment_rule(_PROJECTS_PATTERN),
)


def route_path(path: str | None) -> ProjectIdentity | None:
    """Map a working directory to a project identity, first matching rule wins."""
    if not path:
        return None
    normalized = normalize_path(path)
    for rule in PATH_RULES:
        identity = rule(normalized)
        if identity is not None:
            identity.evidence = f"cwd:{path}"
            return identity
    return None


def derive_project_path(session_file: str | None) -> str:
    """Best-effort project path from a transcript file name.

    ``C--Projects-foo/abc.jsonl`` -> ``C:/Projects/foo``. Used for log context only.
    """
    if not session_file:
        return "unknown"
    parts = session_file.replace("\\", "/").split("/")
    dir_part = parts[0] if len(parts) > 1 else session_file
    converted = re.sub(r"^([A-Z])--", r"\1:/", dir_part)
    converted = converted.replace("-", "/")
    return converted or "unknown"
