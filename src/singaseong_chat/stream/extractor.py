"""Text extraction from upstream payloads of unknown dialect.

Each rule is a pure function ``payload -> str | None``.  Rules are tried in
order and the first one that finds a string wins, so an Ollama
``response`` field beats an OpenAI ``choices`` array when both appear.
"""

from __future__ import annotations

from typing import Any, Callable

Rule = Callable[[Any], "str | None"]

# Values of the ``event`` discriminator that mark control envelopes.
CONTROL_EVENTS = frozenset({"meta"})

_MAX_NESTING = 4


def _path(*keys: str | int) -> Rule:
    """Build a rule that follows *keys* through dicts and lists."""

    def rule(payload: Any) -> str | None:
        node = payload
        for key in keys:
            if isinstance(key, int):
                if not isinstance(node, list) or len(node) <= key:
                    return None
            elif not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        return node if isinstance(node, str) else None

    rule.__name__ = "rule_" + "_".join(str(k) for k in keys)
    return rule


RULES: tuple[Rule, ...] = (
    _path("response"),
    _path("content"),
    _path("text"),
    _path("message", "content"),
    _path("delta", "content"),
    _path("choices", 0, "delta", "content"),
    _path("choices", 0, "message", "content"),
    _path("choices", 0, "text"),
    _path("delta"),
)


def is_control(payload: Any, event: str | None = None) -> bool:
    """True for meta/control envelopes that must never yield text."""
    if isinstance(event, str) and event in CONTROL_EVENTS:
        return True
    if not isinstance(payload, dict):
        return False
    tag = payload.get("event")
    return isinstance(tag, str) and tag in CONTROL_EVENTS


def extract_text(payload: Any, event: str | None = None, _depth: int = 0) -> str:
    """Return the text increment carried by *payload*, or ``""``.

    Never raises and never mutates *payload*.
    """
    if is_control(payload, event):
        return ""
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return ""
    for rule in RULES:
        text = rule(payload)
        if text is not None:
            return text
    # Some gateways wrap the real message in a ``data`` object.
    nested = payload.get("data")
    if isinstance(nested, (dict, str)) and _depth < _MAX_NESTING:
        return extract_text(nested, _depth=_depth + 1)
    return ""
