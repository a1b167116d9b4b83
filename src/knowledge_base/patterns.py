"""Detection pattern parsing.

Patterns are authored either as ``/body/flags`` literals, as bare regex
strings (compiled case-insensitively) or as ``{pattern, flags}`` objects.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from .schema import PatternSpec

logger = logging.getLogger(__name__)

_LITERAL_RE = re.compile(r"^/(.+)/([gimsuy]*)$", re.DOTALL)

# Flags without a Python counterpart ("g", "y", "u") are accepted and ignored.
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


@dataclass
class CompiledPattern:
    """A detection pattern compiled once at load time."""
    source: str
    regex: re.Pattern

    def search(self, text: str) -> bool:
        return self.regex.search(text) is not None


def translate_flags(flags: str) -> int:
    """Translate a flag string such as "im" into ``re`` flags."""
    result = 0
    for flag in flags:
        result |= _FLAG_MAP.get(flag, 0)
    return result


def parse_pattern(raw: Union[str, PatternSpec]) -> tuple[str, int]:
    """Split a pattern definition into its regex body and ``re`` flags."""
    if isinstance(raw, PatternSpec):
        return raw.pattern, translate_flags(raw.flags)

    match = _LITERAL_RE.match(raw)
    if match:
        return match.group(1), translate_flags(match.group(2))
    return raw, re.IGNORECASE


def compile_pattern(
    raw: Union[str, PatternSpec],
    owner: Optional[str] = None,
) -> Optional[CompiledPattern]:
    """Compile a pattern, returning None (and logging) when it is invalid."""
    source = raw.pattern if isinstance(raw, PatternSpec) else raw
    if not source:
        return None
    try:
        body, flags = parse_pattern(raw)
        return CompiledPattern(source=source, regex=re.compile(body, flags))
    except re.error as e:
        logger.warning("Invalid regex pattern for %s: %r (%s)", owner or "unknown", source, e)
        return None
