from enum import StrEnum

from pydantic import BaseModel


class SocialPlatform(StrEnum):
    linkedin = "linkedin"
    facebook = "facebook"
    instagram = "instagram"
    x = "x"  # twitter.com and x.com share this slot
    tiktok = "tiktok"
    youtube = "youtube"
    pinterest = "pinterest"
    google = "google"  # Google Maps


class SocialLink(BaseModel):
    url: str
    handle: str
    sourceUrl: str


def empty_socials() -> dict[str, list[SocialLink]]:
    return {platform.value: [] for platform in SocialPlatform}
