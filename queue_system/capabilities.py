"""Normalise service-type and language capability fields.

Stored capability fields come in three shapes: a list, a JSON-encoded
string, or a key/value mapping whose values are the codes. All of them are
reduced to a frozenset of strings here; non-string members and parse
failures count as nothing.
"""
import json
import logging

logger = logging.getLogger(__name__)


def to_set(raw):
    if not raw:
        return frozenset()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.debug('Unparseable capability value %r', raw)
            return frozenset()
        if not isinstance(raw, (list, tuple, set, frozenset, dict)):
            return frozenset()
    if isinstance(raw, dict):
        raw = raw.values()
    try:
        return frozenset(v for v in raw if isinstance(v, str) and v)
    except TypeError:
        return frozenset()


def has_intersection(a, b):
    return not to_set(a).isdisjoint(to_set(b))


def to_list(raw):
    """Canonical storage form: a sorted list."""
    return sorted(to_set(raw))
