"""
Helper Utilities - Thin wrappers around open-source libraries

Validation (validators), formatting (humanize) and small text helpers used
across planning and execution.
"""

from typing import Optional
import re
import validators
import humanize


# ============================================================================
# Validation Helpers (using 'validators' library)
# ============================================================================

def validate_url(url: str) -> bool:
    """True when ``url`` is well formed enough to navigate to."""
    return bool(validators.url(url))


def normalize_url(value: str) -> Optional[str]:
    """
    Turn a URL-ish value into a navigable URL.

    ``example.com/page`` becomes ``https://example.com/page``. Values that
    already carry a scheme (including ``about:`` and ``file:``) pass through.
    """
    value = (value or "").strip().strip('"\'')
    if not value:
        return None
    if re.match(r'^[a-zA-Z][a-zA-Z0-9+.-]*:', value) and not re.match(r'^[\w.-]+:\d+', value):
        return value
    return f"https://{value}"


# ============================================================================
# Formatting Helpers (using 'humanize' library)
# ============================================================================

def format_duration_ms(duration_ms: int) -> str:
    """Format milliseconds as a readable duration (e.g. '3 seconds')."""
    return humanize.precisedelta(duration_ms / 1000, minimum_unit="milliseconds", format="%0.0f")


def format_file_size(bytes_count: int) -> str:
    """Format bytes to human-readable size (e.g., '1.5 MB')."""
    return humanize.naturalsize(bytes_count)


# ============================================================================
# Utility Functions
# ============================================================================

def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate string to maximum length.

    Args:
        text: String to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
