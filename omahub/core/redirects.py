"""Post-login redirect validation (open-redirect protection)."""

import re
from urllib.parse import urlsplit

# Absolute in-app path with an optional simple query string. No scheme, host,
# fragment, backslash, "//" or "..".
INAPP_PATH_PATTERN = re.compile(
    r"^(?!.*//)(?!.*\.\.)/[A-Za-z0-9._\-/~]*(?:\?[A-Za-z0-9._\-~&=+]*)?\Z"
)
MAX_INAPP_REDIRECT_LEN = 256


def is_safe_redirect_path(value: object) -> bool:
    """Return True if value is a same-origin relative path, e.g. "/studio/brands".

    Accepted: "/", "/studio", "/studio/brands/brand-7", "/studio?tab=leads"
    Rejected: "studio" (not absolute), "https://evil.com", "//evil.com",
    "/\\evil.com", "/a#b", "/..", "javascript:alert(1)"
    """
    if not isinstance(value, str) or not value:
        return False
    if len(value) > MAX_INAPP_REDIRECT_LEN:
        return False
    if not INAPP_PATH_PATTERN.fullmatch(value):
        return False
    parts = urlsplit(value)
    return not parts.scheme and not parts.netloc


def safe_redirect_path(value: object, default: str) -> str:
    """Return value when it is a safe in-app path, otherwise the default."""
    return value if is_safe_redirect_path(value) else default  # type: ignore[return-value]
