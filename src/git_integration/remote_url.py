"""Remote URL helpers: credential embedding, stripping and comparison.

Tokens are only ever embedded into the argv of a single network command.
The URL stored in .git/config is always the credential-free form produced by
strip_credentials().
"""

import os
import re
from typing import Iterable, Optional, Tuple
from urllib.parse import quote, urlsplit, urlunsplit

from src.git_integration.models import Secret

# scp-like syntax: [user@]host:path (no scheme, colon before the first slash)
SCP_LIKE_PATTERN = re.compile(r'^(?:(?P<user>[^@/]+)@)?(?P<host>[^:/]+):(?P<path>(?!//).*)$')

REDACTED = "***REDACTED***"


def _is_http(url: str) -> bool:
    return urlsplit(url).scheme.lower() in ("http", "https")


def _netloc_without_userinfo(netloc: str) -> str:
    return netloc.rsplit("@", 1)[-1]


def strip_credentials(url: str) -> str:
    """Remove any userinfo component from an http(s) URL.

    Non-http URLs are returned unchanged: ssh user names are part of the
    address, not a credential.
    """
    if not _is_http(url):
        return url
    parts = urlsplit(url)
    return urlunsplit(parts._replace(netloc=_netloc_without_userinfo(parts.netloc)))


def build_auth_url(url: str, credential: Optional[Secret]) -> str:
    """Embed the credential as the userinfo of an http(s) URL.

    Args:
        url: Configured remote URL
        credential: Token to embed, or None

    Returns:
        URL of the form https://<token>@host/path, or the clean URL when no
        credential is configured or the transport is not http(s).
    """
    clean = strip_credentials(url)
    if credential is None or not _is_http(clean):
        return clean
    parts = urlsplit(clean)
    token = quote(credential.reveal(), safe="")
    return urlunsplit(parts._replace(netloc=f"{token}@{parts.netloc}"))


def repository_identity(url: str) -> Tuple[str, str]:
    """Return a (host, path) pair identifying the repository behind a URL.

    Credentials, trailing slashes and a ".git" suffix are ignored, so
    https://tok@github.com/acme/blog.git and https://github.com/acme/blog
    have the same identity. Local paths and file:// URLs have an empty host
    and an absolute, normalized path.
    """
    url = url.strip()
    parts = urlsplit(url)

    if parts.scheme and parts.scheme.lower() != "file" and parts.netloc:
        host = _netloc_without_userinfo(parts.netloc).lower()
        path = parts.path
    elif parts.scheme.lower() == "file":
        host = ""
        path = os.path.normpath(parts.path)
    else:
        match = SCP_LIKE_PATTERN.match(url)
        if match and not os.path.isabs(url):
            host = match.group("host").lower()
            path = "/" + match.group("path").lstrip("/")
        else:
            host = ""
            path = os.path.normpath(os.path.abspath(url))

    path = path.rstrip("/")
    if path.endswith(".git"):
        path = path[:-4]
    return host, path.rstrip("/")


def same_repository(url_a: str, url_b: str) -> bool:
    """Check whether two remote URLs point at the same repository."""
    return repository_identity(url_a) == repository_identity(url_b)


def sanitize_credentials(text: str, secrets: Iterable[Secret] = ()) -> str:
    """Sanitize git output and error messages to prevent credential leakage.

    Masks userinfo in URLs, Authorization headers, Bearer tokens and
    token=... fields, plus any known secret value verbatim or URL-encoded.

    Args:
        text: The error message or log text to sanitize
        secrets: Known secrets to mask wherever they appear

    Returns:
        Sanitized text with credentials masked

    Example:
        >>> sanitize_credentials("fatal: https://ghp_x@github.com/a/b not found")
        'fatal: https://***@github.com/a/b not found'
    """
    if not text:
        return text

    sanitized = text
    for secret in secrets:
        if secret is None:
            continue
        value = secret.reveal()
        for form in {value, quote(value, safe="")}:
            sanitized = sanitized.replace(form, REDACTED)

    # user:pass@ and token@ in URLs
    sanitized = re.sub(r'://[^/\s@]+:[^/\s@]+@', '://***:***@', sanitized)
    sanitized = re.sub(r'(https?)://[^/\s@:]+@', r'\1://***@', sanitized, flags=re.IGNORECASE)

    sanitized = re.sub(
        r'Authorization:\s*[^\n\r]+',
        f'Authorization: {REDACTED}',
        sanitized,
        flags=re.IGNORECASE,
    )
    sanitized = re.sub(
        r'Bearer\s+[^\s\n\r]+',
        f'Bearer {REDACTED}',
        sanitized,
        flags=re.IGNORECASE,
    )
    sanitized = re.sub(
        r'(api_?token|token|password)["\']?\s*[:=]\s*["\']?([^"\'\s&]+)',
        rf'\1={REDACTED}',
        sanitized,
        flags=re.IGNORECASE,
    )
    return sanitized
