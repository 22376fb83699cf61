"""Website URL helpers.

- Accepts bare hostnames ("example.com") by assuming https
- Rejects non-http(s) schemes and hosts without a dot
- Canonicalizes URLs for crawl de-duplication (fragment dropped, host lowercased)
"""

from urllib.parse import urldefrag, urljoin, urlparse, urlunparse


class InvalidWebsiteURLError(ValueError):
    """Raised when a string cannot be used as a website URL."""

    pass


def validate_website_url(url: str) -> str:
    """Validate a client website URL and return it with a scheme.

    Args:
        url: User-supplied URL, with or without scheme.

    Returns:
        The URL with an http(s) scheme.

    Raises:
        InvalidWebsiteURLError: If the URL has no usable host.
    """
    candidate = url.strip()
    if not candidate:
        raise InvalidWebsiteURLError("Website URL is empty")

    if not candidate.lower().startswith(("http://", "https://")):
        if "://" in candidate:
            raise InvalidWebsiteURLError(f"Unsupported URL scheme: {candidate}")
        candidate = f"https://{candidate}"

    parsed = urlparse(candidate)
    host = parsed.hostname or ""
    if not host or "." not in host or " " in candidate:
        raise InvalidWebsiteURLError(f"Invalid website URL: {url}")

    return candidate


def normalize_url(url: str) -> str:
    """Canonical form used to avoid fetching the same page twice."""
    url, _ = urldefrag(url)
    parsed = urlparse(url)
    path = parsed.path.rstrip("/") or "/"
    return urlunparse(
        (parsed.scheme.lower(), (parsed.netloc or "").lower(), path, "", parsed.query, "")
    )


def same_site(url: str, root_url: str) -> bool:
    """Whether url is on the same host as root_url (ignoring a www. prefix)."""

    def _host(value: str) -> str:
        host = (urlparse(value).hostname or "").lower()
        return host[4:] if host.startswith("www.") else host

    return bool(_host(url)) and _host(url) == _host(root_url)


def resolve_link(base_url: str, href: str) -> str | None:
    """Absolute http(s) URL for a link found on base_url, or None."""
    href = href.strip()
    if not href or href.startswith(("mailto:", "tel:", "javascript:", "#")):
        return None
    absolute = urljoin(base_url, href)
    if urlparse(absolute).scheme not in ("http", "https"):
        return None
    return absolute
