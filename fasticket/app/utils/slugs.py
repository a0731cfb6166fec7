"""URL slug helpers shared by organizations and events."""
from __future__ import annotations

import re
import unicodedata

from .. import db


def generate_slug(name: str) -> str:
    """Lowercase ASCII slug: letters, digits and single hyphens, no hyphen at either end."""
    if not name:
        return ""
    # fold accents (e.g. "İstanbul Müzik" -> "istanbul muzik") before dropping non-ascii
    s = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    s = s.lower().strip()
    s = re.sub(r"[^\w\s-]", "", s)
    s = re.sub(r"[\s_]+", "-", s)
    s = re.sub(r"-{2,}", "-", s)
    return s.strip("-")


def is_slug_available(model, slug: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(model.id).filter(model.slug == slug)
    if exclude_id is not None:
        q = q.filter(model.id != exclude_id)
    return q.first() is None


def unique_slug(model, name: str, exclude_id: int | None = None, fallback: str = "item") -> str:
    """Generate a slug for `name` that no other row of `model` uses.

    Collisions get a numeric suffix (`summer-fest`, `summer-fest-2`, ...). All-digit
    slugs are prefixed with `fallback` so they never look like a numeric id in URLs.
    """
    base = generate_slug(name) or fallback
    if base.isdigit():
        base = f"{fallback}-{base}"
    candidate = base
    n = 2
    while not is_slug_available(model, candidate, exclude_id=exclude_id):
        candidate = f"{base}-{n}"
        n += 1
    return candidate
