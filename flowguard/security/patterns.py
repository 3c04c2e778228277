# flowguard/security/patterns.py

from __future__ import annotations

import re
from typing import Any, Iterator, List, Tuple

# (label, pattern) in reporting order. Matched against every string value of a node's parameters.
SENSITIVE_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("API Key", re.compile(r"api[_-]?key", re.IGNORECASE)),
    ("Password", re.compile(r"password", re.IGNORECASE)),
    ("Secret", re.compile(r"secret", re.IGNORECASE)),
    ("Token", re.compile(r"token", re.IGNORECASE)),
    ("Private Key", re.compile(r"private[_-]?key", re.IGNORECASE)),
    ("SSN", re.compile(r"ssn|social.security", re.IGNORECASE)),
    ("Credit Card", re.compile(r"credit.card|ccn", re.IGNORECASE)),
    ("Credit Card Number", re.compile(r"\b[0-9]{4}[-\s]?[0-9]{4}[-\s]?[0-9]{4}[-\s]?[0-9]{4}\b")),
]


def iter_strings(value: Any, max_depth: int) -> Iterator[str]:
    """
    Yield every string inside a nested dict/list structure in document order.

    Uses an explicit stack instead of recursion; containers nested deeper than
    `max_depth` levels below `value` are not expanded.
    """
    stack: List[Tuple[Any, int]] = [(value, 0)]
    while stack:
        cur, depth = stack.pop()
        if isinstance(cur, str):
            yield cur
            continue
        if depth >= max_depth:
            continue
        if isinstance(cur, dict):
            children = list(cur.values())
        elif isinstance(cur, list):
            children = cur
        else:
            continue
        # reversed so the first child is popped first
        for child in reversed(children):
            stack.append((child, depth + 1))


def match_sensitive(text: str) -> List[str]:
    """Labels of every sensitive pattern found in `text` (each at most once)."""
    return [label for label, pattern in SENSITIVE_PATTERNS if pattern.search(text)]
