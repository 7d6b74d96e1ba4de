"""Candidate endpoint list for live-channel negotiation."""

from collections.abc import Iterable

_LIVE_SCHEMES = {"https://": "wss://", "http://": "ws://"}


def to_live_scheme(url: str) -> str:
    """Translate an http(s) URL to ws(s); other URLs are returned unchanged."""
    for http_scheme, ws_scheme in _LIVE_SCHEMES.items():
        if url.startswith(http_scheme):
            return ws_scheme + url[len(http_scheme):]
    return url


def _strip(url: str | None) -> str | None:
    if url is None:
        return None
    url = url.strip().rstrip("/")
    return url or None


def build_candidate_urls(
    overrides: Iterable[str] | None = None,
    env_url: str | None = None,
    origin: str | None = None,
    fallbacks: Iterable[str] = (),
) -> list[str]:
    """Ordered, de-duplicated endpoints to try.

    Explicit overrides come first, then the environment endpoint in its
    live scheme, then the origin in its live scheme, then the
    fixed fallbacks. URLs that reach the same endpoint once translated
    (``http://h`` and ``ws://h``) count as one; the first keeps its place.
    """
    ordered: list[str | None] = []
    ordered.extend(_strip(u) for u in overrides or ())

    env_url = _strip(env_url)
    if env_url:
        ordered.append(to_live_scheme(env_url))

    origin = _strip(origin)
    if origin:
        ordered.append(to_live_scheme(origin))

    ordered.extend(_strip(u) for u in fallbacks)

    seen: set[str] = set()
    candidates: list[str] = []
    for url in ordered:
        if not url or to_live_scheme(url) in seen:
            continue
        seen.add(to_live_scheme(url))
        candidates.append(url)
    return candidates
