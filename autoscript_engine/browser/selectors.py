"""Maps a step's selector and selector type onto Playwright selector syntax."""

from __future__ import annotations

from typing import Optional

_ENGINE_PREFIXES = ("css=", "xpath=", "text=", "id=")


def build_selector(selector: str, selector_type: Optional[str] = None) -> str:
    raw = selector.strip()
    kind = (selector_type or "css").lower()
    if not raw:
        return raw
    if kind == "css":
        return raw
    if raw.startswith(_ENGINE_PREFIXES):
        return raw
    if kind == "xpath":
        return f"xpath={raw}"
    if kind == "id":
        token = raw.lstrip("#").replace('"', '\\"')
        return f'[id="{token}"]'
    if kind == "class":
        classes = [part.lstrip(".") for part in raw.replace(".", " ").split()]
        return "".join(f".{name}" for name in classes if name)
    if kind == "text":
        return f"text={raw}"
    raise ValueError(f"Unsupported selector type: {selector_type}")
