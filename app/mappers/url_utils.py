import re
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

import tldextract

from app.mappers.countries import URL_SEGMENT_COUNTRIES, country_for_tld

# Bundled public suffix snapshot only, never fetched over the network
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)

_ASSET_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx",
    ".css", ".js", ".json", ".xml",
    ".zip", ".tar", ".gz", ".rar",
    ".mp4", ".mp3", ".avi", ".mov",
)

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")


def ensure_scheme(url: str) -> str:
    url = url.strip()
    if not _SCHEME_RE.match(url):
        return f"https://{url.lstrip('/')}"
    return url


def _host(url: str) -> str:
    if "://" not in url:
        url = f"//{url}"
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def get_registrable_domain(url: str) -> str | None:
    """Public-suffix aware registrable domain ("hotel.co.uk"), None if unresolvable."""
    host = _host(url)
    if not host:
        return None
    ext = _EXTRACT(host)
    if not ext.domain or not ext.suffix:
        return None
    return f"{ext.domain}.{ext.suffix}"


def get_public_suffix(url: str) -> str | None:
    host = _host(url)
    if not host:
        return None
    return _EXTRACT(host).suffix or None


def normalize_url(url: str) -> str:
    """Dedup key for a URL: no fragment, sorted query, no trailing slash except root."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    if not parsed.scheme or not parsed.netloc:
        return url
    query = urlencode(sorted(parse_qsl(parsed.query, keep_blank_values=True)))
    path = parsed.path or "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return urlunparse(
        (parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.params, query, "")
    )


def is_same_domain(url1: str, url2: str) -> bool:
    domain1 = get_registrable_domain(url1)
    domain2 = get_registrable_domain(url2)
    return bool(domain1 and domain2 and domain1 == domain2)


def is_asset(url: str) -> bool:
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False
    return path.endswith(_ASSET_EXTENSIONS)


def resolve_url(base_url: str, href: str) -> str | None:
    try:
        resolved = urljoin(base_url, href.strip())
    except ValueError:
        return None
    if not resolved.startswith(("http://", "https://")):
        return None
    return resolved


def url_path(url: str) -> str:
    try:
        return urlparse(url).path.lower() or "/"
    except ValueError:
        return "/"


def url_variants(url: str) -> list[str]:
    """Homepage URL plus the variants worth trying when it is unreachable.

    Hostname hyphen heuristics first (``hotelorizonte.com`` <-> ``hotel-orizonte.com``),
    then the http/https swap of every candidate.
    """
    parsed = urlparse(url)
    host = parsed.hostname or ""
    hosts = [host]

    prefix = "www." if host.startswith("www.") else ""
    bare = host[len(prefix):]
    label, dot, rest = bare.partition(".")
    if dot and "-" in label:
        hosts.append(f"{prefix}{label.replace('-', '')}.{rest}")
    elif dot and label.startswith("hotel") and len(label) > len("hotel"):
        hosts.append(f"{prefix}hotel-{label[len('hotel'):]}.{rest}")

    candidates = []
    for candidate_host in hosts:
        netloc = parsed.netloc.replace(host, candidate_host, 1) if host else parsed.netloc
        candidates.append(urlunparse(parsed._replace(netloc=netloc)))

    swapped_scheme = {"http": "https", "https": "http"}.get(parsed.scheme)
    if swapped_scheme:
        candidates += [
            urlunparse(urlparse(c)._replace(scheme=swapped_scheme)) for c in list(candidates)
        ]

    variants: list[str] = []
    for candidate in candidates:
        if candidate not in variants:
            variants.append(candidate)
    return variants


def detect_country_from_url(url: str) -> str | None:
    """Country hint from the URL: ccTLD, then ``xx.`` subdomain, then ``/xx/`` path segment."""
    from_tld = country_for_tld(get_public_suffix(url))
    if from_tld:
        return from_tld

    host = _host(url)
    first_label = host.split(".", 1)[0] if host.count(".") >= 2 else ""
    if first_label in URL_SEGMENT_COUNTRIES:
        return URL_SEGMENT_COUNTRIES[first_label]

    segments = [s for s in url_path(url).split("/") if s]
    if segments and segments[0] in URL_SEGMENT_COUNTRIES:
        return URL_SEGMENT_COUNTRIES[segments[0]]
    return None
