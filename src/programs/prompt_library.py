"""
Small helpers for assembling prompt text out of titled sections.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Mapping


def _lines(*parts: str) -> str:
    out: List[str] = []
    for p in parts:
        t = str(p or "").strip()
        if t:
            out.append(t)
    return "\n\n".join(out).strip() + "\n"


def bullets(title: str, items: Iterable[str]) -> str:
    rows = [f"- {str(b).strip()}" for b in items if str(b or "").strip()]
    if not rows:
        return ""
    return _lines(title.strip(), "\n".join(rows))


def section(*, title: str, body: str) -> str:
    return _lines(title.strip(), str(body or "").strip())


def json_contract(keys: Mapping[str, Any]) -> str:
    """`Return ONLY valid JSON with EXACTLY these keys` block with an example object."""
    example = json.dumps(dict(keys), indent=2, ensure_ascii=False)
    return _lines("OUTPUT FORMAT:", "Return ONLY valid JSON (no prose, no markdown, no code fences) with EXACTLY these keys:", example)


def compose(*parts: str) -> str:
    return _lines(*parts)


def collapse_whitespace(text: str) -> str:
    return " ".join(str(text or "").split())


__all__ = ["bullets", "collapse_whitespace", "compose", "json_contract", "section"]
