from __future__ import annotations
import re
from typing import Callable, Iterator, Optional

# A tag is "#" followed by a maximal run of these characters.
_TAG_CHARS = "A-Za-z0-9_\u4e00-\u9fa5"
_TAG_RE = re.compile(f"#([{_TAG_CHARS}]+)")
_VALID_TAG_RE = re.compile(f"[{_TAG_CHARS}]+")
_WHITESPACE_RUN_RE = re.compile(r"\s{2,}")


def iter_tag_tokens(content: str) -> Iterator[tuple[int, int, str]]:
    """Yield ``(start, end, tag)`` for each tag token in ``content``.

    ``start`` points at the ``#`` and ``end`` just past the last tag
    character. The run is maximal, so the character at ``end`` (if any) is
    never a tag character.
    """
    for m in _TAG_RE.finditer(content or ""):
        yield m.start(), m.end(), m.group(1)


def extract_tags(content: Optional[str]) -> list[str]:
    """Distinct tags in ``content``, first-seen order."""
    seen: dict[str, None] = {}
    for _, _, tag in iter_tag_tokens(content or ""):
        seen.setdefault(tag, None)
    return list(seen)


def is_valid_tag(tag: str) -> bool:
    return bool(tag) and _VALID_TAG_RE.fullmatch(tag) is not None


def _rewrite(content: str, tag: str, replace: Callable[[str], str]) -> str:
    out: list[str] = []
    pos = 0
    for start, end, found in iter_tag_tokens(content):
        if found != tag:
            continue
        out.append(content[pos:start])
        out.append(replace(found))
        pos = end
    out.append(content[pos:])
    return "".join(out)


def replace_tag(content: str, old: str, new: str) -> str:
    """Replace every ``#old`` token with ``#new``; ``#oldX`` is left alone."""
    return _rewrite(content, old, lambda _: f"#{new}")


def remove_tag(content: str, tag: str) -> str:
    """Drop every ``#tag`` token, then collapse whitespace runs to one space."""
    stripped = _rewrite(content, tag, lambda _: "")
    return _WHITESPACE_RUN_RE.sub(" ", stripped)
