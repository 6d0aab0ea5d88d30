import re
from typing import Tuple

from app.platform.exceptions import ValidationError

EMPTY_URL_MESSAGE = "Please enter your website URL to get graded."
INVALID_URL_MESSAGE = "Please enter a valid website URL (e.g., example.com)"

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://")
_DOMAIN_RE = re.compile(
    r"^(?:[a-z0-9](?:[a-z0-9\-]{0,61}[a-z0-9])?\.)+"  # labels
    r"[a-z]{2,63}"  # tld
    r"(?::\d{1,5})?"  # port
    r"(?:/[^\s]*)?$"  # path
)


def clean_url(url: str) -> str:
    """
    Reduce user input to the cache key / route segment form:
    "HTTPS://Example.com/" -> "example.com".
    """
    cleaned = url.strip().lower()
    cleaned = _SCHEME_RE.sub("", cleaned)
    return cleaned.rstrip("/")


def is_valid_domain(cleaned_url: str) -> bool:
    return bool(_DOMAIN_RE.match(cleaned_url))


def validate_url(url: str) -> Tuple[bool, str, str]:
    if not url or not url.strip():
        return False, "", EMPTY_URL_MESSAGE

    cleaned = clean_url(url)

    if not is_valid_domain(cleaned):
        return False, cleaned, INVALID_URL_MESSAGE

    return True, cleaned, ""


def normalize_url(url: str) -> str:
    """Clean and validate, raising ValidationError for anything that isn't a plausible domain."""
    is_valid, cleaned, error_message = validate_url(url)

    if not is_valid:
        raise ValidationError(error_message)

    return cleaned
