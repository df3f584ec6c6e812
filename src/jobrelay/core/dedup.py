"""Deduplication helpers (core domain)."""

from __future__ import annotations

import hashlib
import re

FINGERPRINT_CHARS = 400

_URL_RE = re.compile(r"https?://\S+")
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")
_PHONE_RE = re.compile(r"\+?\d[\d\s\-]{7,}\d")
_NON_TEXT_RE = re.compile(r"[^a-z0-9\s]")


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _canonical_pass(text: str) -> str:
    text = text.lower()
    text = _URL_RE.sub("", text)
    text = _EMAIL_RE.sub("", text)
    text = _PHONE_RE.sub("", text)
    text = _NON_TEXT_RE.sub(" ", text)
    return _collapse_whitespace(text)


def normalize_text(text: str) -> str:
    """Canonicalize text for comparison and fingerprinting.

    Lower-cases, drops URLs, emails and phone-like digit runs, turns every
    other symbol into a space and collapses whitespace. Punctuation between
    digits ("12.345.678.90") only becomes a phone-like run after one pass, so
    passes repeat until the text stops changing.
    """

    current = _canonical_pass(text)
    while True:
        following = _canonical_pass(current)
        if following == current:
            return current
        current = following


def compute_fingerprint(text: str, max_chars: int = FINGERPRINT_CHARS) -> str:
    """Return the SHA-256 hex digest of the normalized, truncated text.

    Reposts that only differ after ``max_chars`` normalized characters share a
    fingerprint.
    """

    normalized = normalize_text(text)[:max_chars]
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
