from __future__ import annotations

"""
Cheap structural check for .osu files.

The calculators happily parse anything (an HTML error page scores 0 pp),
so content is checked here before it is cached or scored: it must start
with the `osu file format v` header and carry at least one hit object.
"""

from typing import Optional

FORMAT_HEADER = b"osu file format v"
HIT_OBJECTS_SECTION = "[HitObjects]"

_BOM = b"\xef\xbb\xbf"


def beatmap_problem(content: bytes) -> Optional[str]:
    """Return why `content` is not a usable beatmap, or None if it is."""
    head = content.lstrip()
    if head.startswith(_BOM):
        head = head[len(_BOM):].lstrip()
    if not head.startswith(FORMAT_HEADER):
        return "missing 'osu file format v' header"

    in_hit_objects = False
    for raw in content.decode("utf-8", errors="replace").splitlines():
        line = raw.strip()
        if not line or line.startswith("//"):
            continue
        if line.startswith("["):
            in_hit_objects = line == HIT_OBJECTS_SECTION
            continue
        if in_hit_objects:
            return None
    return "no hit objects"
