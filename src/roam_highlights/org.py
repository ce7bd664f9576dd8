"""Org-mode text helpers for highlight notes."""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence, Tuple

HIGHLIGHTS_HEADING = "Highlights"
REFERENCE_TAG = "reference"

UNSAFE_SLUG_CHARS = re.compile(r"[^A-Za-z0-9_-]+")
HEADING_PATTERN = re.compile(r"^(?P<stars>\*+)\s+(?P<title>.*?)\s*$")
PROPERTY_PATTERN = re.compile(r"^\s*:(?P<key>[^:\s]+):\s*(?P<value>.*?)\s*$")


def slugify(title: str) -> str:
    """Return a filesystem-safe file stem for ``title``.

    Whitespace, path separators and anything outside ``[A-Za-z0-9_-]`` are
    dropped, so ``"My Book: Vol 2/Notes"`` becomes ``"MyBookVol2Notes"``.
    """

    slug = UNSAFE_SLUG_CHARS.sub("", title or "")
    return slug or "untitled"


def render_note(
    node_id: str,
    reference: str,
    title: str,
    author: Optional[str] = None,
    cover_image_url: Optional[str] = None,
) -> str:
    """Render the skeleton of a new reference note with an empty highlights section."""

    lines = [
        ":PROPERTIES:",
        f":ID:       {node_id}",
        f":ROAM_REFS: {reference}",
        f":AUTHOR:   {author or 'N/A'}",
        ":END:",
        f"#+title: {title}",
        f"#+filetags: :{REFERENCE_TAG}:",
    ]
    if cover_image_url:
        lines.append(f"[[{cover_image_url}]]")
    lines.append("")
    lines.append(f"* {HIGHLIGHTS_HEADING}")
    return "\n".join(lines) + "\n"


def parse_properties(text: str) -> Dict[str, str]:
    """Return the file-level property drawer of an org document.

    Keys are upper-cased. Only a drawer at the top of the file counts.
    """

    properties: Dict[str, str] = {}
    lines = text.splitlines()
    index = 0
    while index < len(lines) and not lines[index].strip():
        index += 1
    if index >= len(lines) or lines[index].strip().upper() != ":PROPERTIES:":
        return properties
    for line in lines[index + 1 :]:
        if line.strip().upper() == ":END:":
            return properties
        match = PROPERTY_PATTERN.match(line)
        if match:
            properties[match.group("key").upper()] = match.group("value")
    # Unterminated drawer.
    return {}


def reference_values(properties: Dict[str, str]) -> List[str]:
    return properties.get("ROAM_REFS", "").split()


def find_section(lines: Sequence[str], heading: str) -> Optional[Tuple[int, int]]:
    """Locate the subtree of the first heading titled exactly ``heading``.

    Returns ``(heading_index, end_index)`` where ``end_index`` is the index of
    the next heading at the same or a higher level, or ``len(lines)``.
    """

    for index, line in enumerate(lines):
        match = HEADING_PATTERN.match(line)
        if not match or match.group("title") != heading:
            continue
        level = len(match.group("stars"))
        for end in range(index + 1, len(lines)):
            other = HEADING_PATTERN.match(lines[end])
            if other and len(other.group("stars")) <= level:
                return index, end
        return index, len(lines)
    return None


def format_list_item(text: str) -> List[str]:
    item_lines = text.strip("\n").splitlines() or [""]
    first, rest = item_lines[0], item_lines[1:]
    return [f"- {first}"] + [f"  {line}" if line.strip() else "" for line in rest]


def append_to_section(text: str, heading: str, items: Sequence[str]) -> Optional[str]:
    """Append ``items`` as list lines to the end of ``heading``'s subtree.

    Returns the new document text, or ``None`` when the heading is missing.
    Content outside the subtree is left byte-for-byte intact.
    """

    lines = text.split("\n")
    section = find_section(lines, heading)
    if section is None:
        return None
    start, end = section
    insert_at = end
    while insert_at - 1 > start and not lines[insert_at - 1].strip():
        insert_at -= 1
    new_lines: List[str] = []
    for item in items:
        new_lines.extend(format_list_item(item))
    lines[insert_at:insert_at] = new_lines
    return "\n".join(lines)
