"""
content/slugs.py -- URL slug generation for article titles.

A slug is "<normalized-title>-<suffix>":
  normalized-title  lowercase ASCII letters and digits separated by single
                    dashes. Accents are folded ("Café" -> "cafe"); any other
                    punctuation is dropped.
  suffix            6 random base-36 characters (36**6, about 2.2e9 values),
                    drawn from the secrets module.

The suffix makes accidental collisions negligible but not impossible. Final
uniqueness is the database's job: the UNIQUE index on articles.slug turns a
collision into SlugTaken (see content/store.py).
"""

import re
import secrets
import string
import unicodedata

SUFFIX_ALPHABET = string.digits + string.ascii_lowercase
SUFFIX_LENGTH = 6

_DROP = re.compile(r"[^a-z0-9\s-]")
_DASHES = re.compile(r"[-\s]+")


def normalize_title(title: str) -> str:
    folded = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    slug = _DROP.sub("", folded.lower())
    slug = _DASHES.sub("-", slug)
    return slug.strip("-")


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def generate_slug(title: str) -> str:
    """Return a fresh slug for `title`. Two calls almost never return the same value.

    A title with nothing sluggable in it ("!!!") yields the bare suffix.
    """
    base = normalize_title(title)
    suffix = random_suffix()
    return f"{base}-{suffix}" if base else suffix
