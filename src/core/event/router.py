"""
Wildcard event-name matching.

Supported Patterns
------------------
- Exact:   "mining.session_started"
- Global:  "*"
- Prefix:  "mining.*"
- Suffix:  "*.leveled_up"
- Inner:   "mining.*.failed"
"""

from __future__ import annotations


class EventRouter:
    """Stateless matcher; one instance is shared by the bus."""

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True
        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        head, *middle, tail = pattern.split("*")
        if not event_name.startswith(head) or not event_name.endswith(tail):
            return False
        if len(head) + len(tail) > len(event_name):
            return False

        cursor = len(head)
        limit = len(event_name) - len(tail)
        for piece in middle:
            if not piece:
                continue
            found = event_name.find(piece, cursor, limit)
            if found == -1:
                return False
            cursor = found + len(piece)

        return True
