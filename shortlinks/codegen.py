"""Random short code generation and input shape checks for codes and URLs."""

import validators
from nanoid import generate

from shortlinks.config import get_settings
from shortlinks.errors import LinkValidationError

__all__ = [
    "ALPHABET",
    "CUSTOM_CODE_MIN_LENGTH",
    "CUSTOM_CODE_MAX_LENGTH",
    "RESERVED_CODES",
    "generate_short_code",
    "validate_custom_code",
    "validate_target_url",
]

ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
CUSTOM_CODE_MIN_LENGTH = 3
CUSTOM_CODE_MAX_LENGTH = 20

# Top-level paths the app serves itself.
RESERVED_CODES = frozenset({"api", "docs", "health", "metrics", "openapi", "redoc"})


def generate_short_code(length: int | None = None) -> str:
    """Return a random URL-safe code of ``length`` characters.

    Collisions are possible; the caller retries against the store.
    """
    if length is None:
        length = get_settings().SHORT_CODE_LENGTH
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    code = generate(ALPHABET, length)
    while code.lower() in RESERVED_CODES:
        code = generate(ALPHABET, length)
    return code


def validate_target_url(url: str) -> str:
    if not isinstance(url, str) or not url.strip():
        raise LinkValidationError("Target URL is required")
    url = url.strip()
    if not validators.url(url):
        raise LinkValidationError("Invalid URL provided")
    return url


def validate_custom_code(code: str) -> str:
    if len(code) < CUSTOM_CODE_MIN_LENGTH or len(code) > CUSTOM_CODE_MAX_LENGTH:
        raise LinkValidationError(
            f"Custom code must be between {CUSTOM_CODE_MIN_LENGTH} and {CUSTOM_CODE_MAX_LENGTH} characters"
        )
    if not (code.isascii() and code.isalnum()):
        raise LinkValidationError("Custom code must be alphanumeric")
    if code.lower() in RESERVED_CODES:
        raise LinkValidationError(f"Custom code '{code}' is reserved")
    return code
