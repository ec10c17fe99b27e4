"""Pure alias and URL helpers.

No I/O happens here; uniqueness of generated aliases is the allocator's job.

Functions:
    normalize_url():  Canonical absolute http/https form of user input, or None.
    is_valid_alias():  Shape check for short codes.
    generate_alias():  Random code from an unambiguous alphabet.
    build_short_url():  Join the public base URL and a code.
    build_qr_url():  Query-string request to the external QR renderer.
"""

import re
from urllib.parse import quote, urlsplit, urlunsplit

import validators
from nanoid import generate

__all__ = [
    "ALPHABET",
    "DEFAULT_ALIAS_LENGTH",
    "normalize_url",
    "is_valid_alias",
    "generate_alias",
    "build_short_url",
    "build_qr_url",
]

# Lowercase letters and digits without 0/o, 1/l (uppercase is never emitted).
ALPHABET = "abcdefghijkmnpqrstuvwxyz23456789"
DEFAULT_ALIAS_LENGTH = 7

MIN_ALIAS_LENGTH = 3
MAX_ALIAS_LENGTH = 32

_ALIAS_RE = re.compile(r"[A-Za-z0-9_-]{%d,%d}" % (MIN_ALIAS_LENGTH, MAX_ALIAS_LENGTH))
_ALLOWED_SCHEMES = ("http", "https")
# "%" stays unescaped so existing escapes survive and normalization is idempotent.
_PATH_SAFE = "/%:@!$&'()*+,;="
_QUERY_SAFE = "/?%:@!$&'()*+,;=#"


def normalize_url(url: str | None) -> str | None:
    if url is None:
        return None
    candidate = url.strip()
    if not candidate:
        return None

    lowered = candidate.lower()
    if not (lowered.startswith("http://") or lowered.startswith("https://")):
        candidate = "https://" + candidate

    try:
        parts = urlsplit(candidate)
        # .port raises ValueError on a malformed port
        parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    hostname = parts.hostname
    if scheme not in _ALLOWED_SCHEMES or not hostname:
        return None

    userinfo, at, hostport = parts.netloc.rpartition("@")
    hostport = hostport.lower()
    if not hostname.isascii():
        try:
            ascii_host = hostname.encode("idna").decode("ascii")
        except UnicodeError:
            return None
        hostport = hostport.replace(hostname, ascii_host, 1)

    normalized = urlunsplit(
        (
            scheme,
            userinfo + at + hostport,
            quote(parts.path, safe=_PATH_SAFE),
            quote(parts.query, safe=_QUERY_SAFE),
            quote(parts.fragment, safe=_QUERY_SAFE),
        )
    )
    # single-label hosts, trailing dots and underscores are legal http hosts
    if not validators.url(normalized, simple_host=True, strict_query=False, rfc_1034=True, rfc_2782=True):
        return None
    return normalized


def is_valid_alias(code: str | None) -> bool:
    if not code:
        return False
    return _ALIAS_RE.fullmatch(code) is not None


def generate_alias(length: int = DEFAULT_ALIAS_LENGTH) -> str:
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    return generate(ALPHABET, length)


def build_short_url(base_url: str, code: str) -> str:
    return f"{base_url.rstrip('/')}/{code}"


def build_qr_url(service_url: str, size: str, short_url: str) -> str:
    return f"{service_url}?size={size}&data={quote(short_url, safe='')}"
