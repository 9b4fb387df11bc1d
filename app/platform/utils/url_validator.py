from typing import Tuple
from urllib.parse import urlparse

# Matches the width of the stored url column
MAX_URL_LENGTH = 2048


def normalize_url(url: str) -> str:
    return url.strip()


def validate_url(url: str) -> Tuple[bool, str, str]:
    """
    Check that url is an absolute http(s) URL.

    Returns (is_valid, normalized_url, error_message).
    """
    if not url or not isinstance(url, str) or not url.strip():
        return False, "", "URL cannot be empty"

    normalized_url = normalize_url(url)

    if len(normalized_url) > MAX_URL_LENGTH:
        return False, normalized_url, f"URL is too long (max {MAX_URL_LENGTH} characters)"

    try:
        parsed = urlparse(normalized_url)
    except ValueError as e:
        return False, normalized_url, f"URL parsing error: {str(e)}"

    if not parsed.scheme:
        return False, normalized_url, "Invalid URL format: missing scheme (http or https)"

    if parsed.scheme not in ['http', 'https']:
        return False, normalized_url, f"Invalid URL scheme: {parsed.scheme} (must be http or https)"

    if not parsed.netloc:
        return False, normalized_url, "Invalid URL format: missing domain"

    return True, normalized_url, ""

