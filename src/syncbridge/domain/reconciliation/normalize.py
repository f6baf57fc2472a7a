"""Deterministic text normalisation used for matching keys and scoring."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^0-9a-z]")
_URL_PREFIX = re.compile(r"^(https?://)?(www\.)?")


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def normalize_name(value: str | None) -> str:
    """Case-fold, trim and collapse internal whitespace.

    This is the key compared by the exact-name strategy and stored as
    ``normalized_name_key`` on snapshot rows.
    """

    if value is None:
        return ""
    return _WHITESPACE.sub(" ", value.strip().casefold())


def compact(value: str | None) -> str:
    """Reduce to ASCII letters and digits only, for scoring comparisons.

    ``"Acme, Inc."`` and ``"ACME INC"`` both compact to ``"acmeinc"``.
    """

    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value.casefold())
    ascii_only = decomposed.encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("", ascii_only)


def extract_domain(email_or_url: str | None) -> str:
    """Return the domain of an email address or the host of a website URL."""

    if email_or_url is None or is_blank(email_or_url):
        return ""
    text = email_or_url.strip().casefold()
    if "@" in text:
        return text.rsplit("@", 1)[-1]
    return _URL_PREFIX.sub("", text).split("/", 1)[0]


def join_values(values: list[str | None] | tuple[str | None, ...]) -> str | None:
    """Join non-blank values with ``", "``; ``None`` when nothing is left."""

    parts = [value.strip() for value in values if value is not None and value.strip()]
    return ", ".join(parts) or None
