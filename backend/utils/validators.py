"""
validators.py — Input Validation Helpers
==========================================

Small, dependency-free checks shared by the routers:
  • email / URL format
  • HTML sanitisation of free text
  • video prompt rules (length + disallowed script patterns)
  • generic length limits
  • slugify + XML escaping for the blog and sitemap
"""

import re
from typing import Optional, Tuple
from urllib.parse import urlparse

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PROMPT_MIN_LENGTH = 10
PROMPT_MAX_LENGTH = 500

SUSPICIOUS_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"onclick", re.IGNORECASE),
]

SLUG_MAX_LENGTH = 100

ValidationResult = Tuple[bool, Optional[str]]


def is_email_valid(email: str) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email))


def sanitize_input(text: str) -> str:
    """Replace HTML-significant characters with entities."""
    return (
        text.replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#039;")
    )


def validate_video_prompt(prompt: Optional[str]) -> ValidationResult:
    """
    Check a user-supplied video prompt.

    Returns:
        (is_valid, message) — message is None when valid.
    """
    if not prompt or not prompt.strip():
        return False, "Prompt cannot be empty"

    if len(prompt) < PROMPT_MIN_LENGTH:
        return False, f"Prompt is too short (minimum {PROMPT_MIN_LENGTH} characters)"

    if len(prompt) > PROMPT_MAX_LENGTH:
        return False, f"Prompt is too long (maximum {PROMPT_MAX_LENGTH} characters)"

    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(prompt):
            return False, "Input contains disallowed patterns"

    return True, None


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except (TypeError, ValueError):
        return False
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def validate_length(
    text: str,
    min_length: int = 0,
    max_length: Optional[int] = None,
    field_name: str = "Input",
) -> ValidationResult:
    if len(text) < min_length:
        return False, f"{field_name} must be at least {min_length} characters"

    if max_length is not None and len(text) > max_length:
        return False, f"{field_name} cannot exceed {max_length} characters"

    return True, None


def slugify(text: str) -> str:
    """
    Turn a title into a URL slug.

    "Hello World & Friends!" → "hello-world-and-friends"
    """
    slug = text.lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = slug.replace("&", "-and-")
    slug = re.sub(r"[^\w-]+", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    slug = slug.strip("-")
    return slug[:SLUG_MAX_LENGTH]


def escape_xml(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )
