"""
URL helpers shared by the link extractor, sitemap resolver and frontier.
"""

from urllib.parse import urlparse, urlunparse, ParseResult


def host_of(parsed: ParseResult) -> str:
    """Return host[:port] of a parsed URL, without any userinfo."""
    return parsed.netloc.rpartition('@')[2]


def site_root(url: str) -> str:
    """Return ``scheme://host`` for a URL."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{host_of(parsed)}"


def directory_of(url: str) -> str:
    """Return ``scheme://host/path/`` up to and including the last slash of the path."""
    parsed = urlparse(url)
    directory = parsed.path[:parsed.path.rfind('/') + 1] or '/'
    return f"{parsed.scheme}://{host_of(parsed)}{directory}"


def strip_fragment(href: str) -> str:
    """Cut a link off at its first '#'."""
    position = href.find('#')
    if position == -1:
        return href
    return href[:position]


def canonicalize(url: str) -> str:
    """
    Canonical string form used for deduplication.

    Scheme and host are lower-cased and the fragment is removed.
    """
    parsed = urlparse(url.strip())
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path,
        parsed.params,
        parsed.query,
        ''
    ))
