"""Version label ordering and normalization."""

import re

_SORT_TOKEN = re.compile(r"\d+|[A-Za-z]+")
_NORMALIZE_TOKEN = re.compile(r"\d+|[a-z]+")


def version_sort_key(label: str | None) -> tuple:
    """Numeric-aware sort key, so that "1.10" sorts after "1.9".

    Numeric tokens compare as integers and always sort after alphabetic tokens at the same
    position; a label that is a prefix of another sorts first.
    """
    key = []
    for token in _SORT_TOKEN.findall(label or ""):
        if token.isdigit():
            key.append((1, int(token), ""))
        else:
            key.append((0, 0, token.lower()))
    return tuple(key)


def normalize_version(label: str | None) -> str:
    """Whitespace and format-insensitive form of a version label.

    "1.0", " 1.0.0 " and "1-0" map to the same string "1":
    lowercase, separators dropped, numeric tokens without leading zeros, trailing zero
    components removed.
    """
    tokens = []
    for token in _NORMALIZE_TOKEN.findall((label or "").lower()):
        tokens.append(str(int(token)) if token.isdigit() else token)
    while len(tokens) > 1 and tokens[-1] == "0":
        tokens.pop()
    return ".".join(tokens)


def pick_latest(versions):
    """Return the version with the greatest label; ties go to the most recently inserted (highest id)."""
    best = None
    best_key = None
    for v in versions:
        key = (version_sort_key(v.version), v.id)
        if best_key is None or key > best_key:
            best, best_key = v, key
    return best
