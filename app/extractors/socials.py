import re
from collections.abc import Callable
from urllib.parse import unquote, urlparse

from app.extractors.html import make_soup
from app.mappers.url_utils import is_same_domain, resolve_url
from app.schemas.socials import SocialLink, SocialPlatform, empty_socials

_SHARE_RE = re.compile(r"/share/|/sharer(?:\.php|/)|share\.php|/intent/|/share\?|/shareArticle", re.IGNORECASE)
_SETTINGS_OR_POLICY_RE = re.compile(
    r"/(?:policies|settings|help|rules|terms|privacy|legal|cookies|ads|about/ads|account/settings)(?:[/?#.\-]|$)",
    re.IGNORECASE,
)
_NON_SOCIAL_HOSTS = ("wix.com", "wixsite.com", "dropbox.com", "drive.google.com", "docs.google.com", "onedrive.live.com", "1drv.ms")

_HANDLE_STOP_LIST = frozenset({
    "policies", "settings", "help", "rules", "terms", "privacy", "legal",
    "cookies", "ads", "es", "fr", "en", "home", "login", "signup", "share",
    "hashtag", "search", "watch", "embed", "intent", "explore",
})
_INSTAGRAM_NON_PROFILE = frozenset({"p", "reel", "reels", "stories", "explore", "tv", "accounts"})
_FACEBOOK_NON_PROFILE = frozenset({"sharer", "sharer.php", "dialog", "plugins", "tr", "share", "login.php", "l.php"})


def _platform_for(host: str, path: str) -> SocialPlatform | None:
    host = host.removeprefix("www.").removeprefix("m.").removeprefix("mobile.")
    if host.endswith("linkedin.com"):
        return SocialPlatform.linkedin
    if host in ("facebook.com", "fb.com") or host.endswith(".facebook.com"):
        return SocialPlatform.facebook
    if host == "instagram.com":
        return SocialPlatform.instagram
    if host in ("twitter.com", "x.com"):
        return SocialPlatform.x
    if host.endswith("tiktok.com"):
        return SocialPlatform.tiktok
    if host in ("youtube.com", "youtu.be"):
        return SocialPlatform.youtube
    if host == "pinterest.com" or re.fullmatch(r"[a-z]{2}\.pinterest\.com|pinterest\.[a-z.]{2,6}", host):
        return SocialPlatform.pinterest
    if host in ("maps.google.com", "maps.app.goo.gl") or (host == "goo.gl" and path.startswith("/maps")):
        return SocialPlatform.google
    if re.fullmatch(r"google\.[a-z.]{2,6}", host) and path.startswith("/maps"):
        return SocialPlatform.google
    return None


def _segments(path: str) -> list[str]:
    return [unquote(s) for s in path.split("/") if s]


def _linkedin_handle(url: str, segments: list[str]) -> str | None:
    # Company pages only; personal /in/ profiles belong to team members
    if len(segments) >= 2 and segments[0] == "company":
        return segments[1]
    return None


def _facebook_handle(url: str, segments: list[str]) -> str | None:
    if not segments or segments[0] in _FACEBOOK_NON_PROFILE:
        return None
    if segments[0] == "profile.php":
        match = re.search(r"[?&]id=(\d+)", url)
        return match.group(1) if match else None
    if segments[0] in ("pages", "pg") and len(segments) >= 2:
        return segments[1]
    return segments[0]


def _instagram_handle(url: str, segments: list[str]) -> str | None:
    if not segments or segments[0] in _INSTAGRAM_NON_PROFILE:
        return None
    return segments[0].lstrip("@")


def _x_handle(url: str, segments: list[str]) -> str | None:
    if not segments or segments[0] in ("i", "home", "hashtag", "search"):
        return None
    return segments[0].lstrip("@")


def _tiktok_handle(url: str, segments: list[str]) -> str | None:
    if segments and segments[0].startswith("@"):
        return segments[0][1:] or None
    return None


def _youtube_handle(url: str, segments: list[str]) -> str | None:
    if not segments:
        return None
    if segments[0].startswith("@"):
        return segments[0][1:] or None
    if segments[0] in ("channel", "c", "user") and len(segments) >= 2:
        return segments[1]
    return None


def _pinterest_handle(url: str, segments: list[str]) -> str | None:
    if not segments or segments[0] in ("pin", "search", "ideas"):
        return None
    return segments[0]


def _google_handle(url: str, segments: list[str]) -> str | None:
    # No stable identifier in maps links: the URL is the handle
    return url


_HANDLE_EXTRACTORS: dict[SocialPlatform, Callable[[str, list[str]], str | None]] = {
    SocialPlatform.linkedin: _linkedin_handle,
    SocialPlatform.facebook: _facebook_handle,
    SocialPlatform.instagram: _instagram_handle,
    SocialPlatform.x: _x_handle,
    SocialPlatform.tiktok: _tiktok_handle,
    SocialPlatform.youtube: _youtube_handle,
    SocialPlatform.pinterest: _pinterest_handle,
    SocialPlatform.google: _google_handle,
}


def classify_social_url(url: str) -> tuple[SocialPlatform, str] | None:
    """``(platform, handle)`` for a profile-like social URL, None otherwise."""
    if _SHARE_RE.search(url) or _SETTINGS_OR_POLICY_RE.search(urlparse(url).path):
        return None
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if not host or any(host == h or host.endswith(f".{h}") for h in _NON_SOCIAL_HOSTS):
        return None

    platform = _platform_for(host, parsed.path.lower())
    if platform is None:
        return None

    handle = _HANDLE_EXTRACTORS[platform](url, _segments(parsed.path.lower()))
    if not handle:
        return None
    if platform != SocialPlatform.google and handle in _HANDLE_STOP_LIST:
        return None
    return platform, handle


def extract_socials(html: str, source_url: str) -> dict[str, list[SocialLink]]:
    """Outbound social profile links of one page, keyed by platform.

    Unique per platform by handle and by URL; ``x`` keeps only the first link.
    """
    soup = make_soup(html)
    socials = empty_socials()
    seen_urls: set[str] = set()
    seen_handles: set[tuple[str, str]] = set()

    for anchor in soup.find_all("a", href=True):
        url = resolve_url(source_url, anchor["href"])
        if not url or is_same_domain(url, source_url):
            continue

        classified = classify_social_url(url)
        if classified is None:
            continue
        platform, handle = classified

        url_key = url.split("#", 1)[0].rstrip("/").lower()
        handle_key = (platform.value, handle.lower())
        if url_key in seen_urls or handle_key in seen_handles:
            continue
        if platform == SocialPlatform.x and socials[platform.value]:
            continue
        seen_urls.add(url_key)
        seen_handles.add(handle_key)
        socials[platform.value].append(
            SocialLink(url=url, handle=handle, sourceUrl=source_url)
        )

    return socials
