"""Share link parsing and third-party URL builders

Extracts canonical Google Drive file ids and YouTube video ids from the
share-link formats authors paste into the catalog.
"""
import re
from typing import NamedTuple
from urllib.parse import urlencode

from contentgate.core.exceptions import InvalidLinkFormat

ID_ALPHABET = re.compile(r"^[a-zA-Z0-9_-]+$")
DRIVE_ID_MIN_LENGTH = 20
YOUTUBE_ID_LENGTH = 11

# Tried in order, first pattern that yields a valid id wins
DRIVE_PATTERNS = (
    re.compile(r"/file/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"id=([a-zA-Z0-9_-]+)"),
    re.compile(r"^([a-zA-Z0-9_-]+)$"),  # bare file id
)

YOUTUBE_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&\n?#]+)"),
    re.compile(r"^([a-zA-Z0-9_-]{11})$"),  # bare video id
)

DRIVE_DOWNLOAD_URL = "https://drive.google.com/uc"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch"
YOUTUBE_EMBED_URL = "https://www.youtube.com/embed"
YOUTUBE_THUMBNAIL_URL = "https://img.youtube.com/vi"

THUMBNAIL_FILES = {
    "default": "default",
    "medium": "mqdefault",
    "high": "hqdefault",
    "maxres": "maxresdefault",
}

ISO8601_DURATION = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


class DriveLink(NamedTuple):
    file_id: str


class YouTubeLink(NamedTuple):
    video_id: str


def is_resource_id(candidate: str) -> bool:
    """True when the value uses only the Drive/YouTube id alphabet (no `:` separators)"""
    return bool(candidate) and bool(ID_ALPHABET.match(candidate))


def _is_valid_drive_id(candidate: str) -> bool:
    return len(candidate) >= DRIVE_ID_MIN_LENGTH and bool(ID_ALPHABET.match(candidate))


def _is_valid_youtube_id(candidate: str) -> bool:
    return len(candidate) == YOUTUBE_ID_LENGTH and bool(ID_ALPHABET.match(candidate))


def parse_drive_link(raw: str) -> DriveLink:
    """Extract a Google Drive file id from a share link or bare id

    Raises:
        InvalidLinkFormat: empty input or no pattern yields a valid id
    """
    if not raw:
        raise InvalidLinkFormat("Google Drive URL is required")

    raw = raw.strip()
    for pattern in DRIVE_PATTERNS:
        match = pattern.search(raw)
        if match and _is_valid_drive_id(match.group(1)):
            return DriveLink(file_id=match.group(1))

    raise InvalidLinkFormat("Invalid Google Drive URL format")


def parse_youtube_link(raw: str) -> YouTubeLink:
    """Extract an 11-character YouTube video id from a watch/short/embed URL or bare id

    Raises:
        InvalidLinkFormat: empty input or no pattern yields a valid id
    """
    if not raw:
        raise InvalidLinkFormat("YouTube URL is required")

    raw = raw.strip()
    for pattern in YOUTUBE_PATTERNS:
        match = pattern.search(raw)
        if match and _is_valid_youtube_id(match.group(1)):
            return YouTubeLink(video_id=match.group(1))

    raise InvalidLinkFormat("Invalid YouTube URL format")


def drive_download_url(file_id: str) -> str:
    """Direct download URL for a shared Drive file"""
    return f"{DRIVE_DOWNLOAD_URL}?{urlencode({'export': 'download', 'id': file_id})}"


def youtube_watch_url(video_id: str) -> str:
    return f"{YOUTUBE_WATCH_URL}?{urlencode({'v': video_id})}"


def youtube_embed_url(
    video_id: str,
    autoplay: bool = False,
    controls: bool = True,
    show_info: bool = False,
    modest_branding: bool = True,
) -> str:
    """Embed URL for an unlisted video; related videos and annotations are always off"""
    params = {
        "autoplay": "1" if autoplay else "0",
        "controls": "1" if controls else "0",
        "showinfo": "1" if show_info else "0",
        "modestbranding": "1" if modest_branding else "0",
        "rel": "0",
        "iv_load_policy": "3",  # hide annotations
    }
    return f"{YOUTUBE_EMBED_URL}/{video_id}?{urlencode(params)}"


def youtube_thumbnail_url(video_id: str, quality: str = "high") -> str:
    """Thumbnail image URL; unknown qualities fall back to the default image"""
    filename = THUMBNAIL_FILES.get(quality, "default")
    return f"{YOUTUBE_THUMBNAIL_URL}/{video_id}/{filename}.jpg"


def parse_iso8601_duration(duration: str) -> int:
    """Parse a YouTube ISO 8601 duration (e.g. PT4M13S) into seconds"""
    match = ISO8601_DURATION.match(duration or "")
    if not match:
        return 0
    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def format_duration(seconds: int) -> str:
    """Format seconds as m:ss or h:mm:ss"""
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
