"""Filename-to-episode pattern matching.

A filename is considered to encode a (season, episode) pair when its
upper-cased name contains any rendering of the encodings in
``EPISODE_ENCODINGS``.  Matching is plain substring containment and is
permissive: ``S101E05`` and ``S02E05`` both match season 1 episode 5
through the season-less ``E05`` encoding.  Callers that need strict matching
must confirm the result with the user.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath

from .paths import basename

# Recognized video file extensions (lower case, with dot)
VIDEO_EXTENSIONS = frozenset({
    # Common
    '.mp4', '.mkv', '.avi', '.mov', '.wmv', '.flv', '.webm', '.m4v',
    # MPEG
    '.mpg', '.mpeg', '.m2v', '.m1v',
    # QuickTime
    '.qt', '.3gp', '.3g2',
    # RealMedia
    '.rm', '.rmvb', '.ra',
    # Windows Media
    '.asf', '.wm',
    # Ogg
    '.ogv', '.ogm',
    # Other
    '.vob', '.divx', '.f4v', '.h264', '.mxf', '.svi', '.tp', '.trp', '.wtv',
    # Transport streams
    '.ts', '.m2ts', '.mts',
    '.swf', '.yuv', '.m4p', '.m4b', '.m4r',
})


@dataclass(frozen=True)
class EpisodeEncoding:
    """One family of textual season/episode encodings.

    Templates use ``{season}`` and ``{episode}`` placeholders and are
    written upper case, since they are compared against an upper-cased
    filename.  Each template is rendered with every combination of
    zero-padded and unpadded numbers.
    """
    name: str
    templates: tuple[str, ...]
    season_one_only: bool = False

    def applies_to(self, season: int) -> bool:
        return season == 1 or not self.season_one_only

    def render(self, season: int, episode: int) -> list[str]:
        rendered = []
        for s in number_forms(season):
            for e in number_forms(episode):
                for template in self.templates:
                    text = template.format(season=s, episode=e)
                    if text not in rendered:
                        rendered.append(text)
        return rendered


# Order matters only for readability; any match wins.
EPISODE_ENCODINGS: tuple[EpisodeEncoding, ...] = (
    # S01E05, S01.E05, S01xE05, S01 E05, [S01E05], [01x05]
    EpisodeEncoding("season-episode", (
        "S{season}E{episode}",
        "S{season}.E{episode}",
        "S{season}XE{episode}",
        "S{season} E{episode}",
        "[S{season}E{episode}]",
        "[{season}X{episode}]",
    )),
    # E05, EP05, EPISODE 05 -- no season marker, so season 1 only
    EpisodeEncoding("episode-only", (
        "E{episode}",
        "EP{episode}",
        "EPISODE {episode}",
    ), season_one_only=True),
    # 第1季第5集, 第1季 第5集, S1 第5集
    EpisodeEncoding("chinese", (
        "第{season}季第{episode}集",
        "第{season}季 第{episode}集",
        "S{season} 第{episode}集",
    )),
    # 第5話, 第5回, 5話, 5回, S1 第5話, シーズン1 エピソード5
    EpisodeEncoding("japanese", (
        "第{episode}話",
        "第{episode}回",
        "{episode}話",
        "{episode}回",
        "S{season} 第{episode}話",
        "S{season} 第{episode}回",
        "シーズン{season} 第{episode}話",
        "シーズン{season} エピソード{episode}",
    )),
    # " 05 ", " #05 ", "- 05" -- releases numbered without any season tag
    EpisodeEncoding("bare-number", (
        " {episode} ",
        " #{episode} ",
        "- {episode}",
    ), season_one_only=True),
)


def number_forms(number: int) -> tuple[str, ...]:
    """Return the zero-padded and unpadded spellings of *number*."""
    padded = f"{number:02d}"
    plain = str(number)
    return (padded,) if padded == plain else (padded, plain)


def is_video_file(path: str) -> bool:
    """Check if *path* has a recognized video extension."""
    return PurePosixPath(basename(path)).suffix.lower() in VIDEO_EXTENSIONS


def _match_text(filename: str) -> str:
    """Prepare *filename* for substring matching.

    The video extension is dropped and the name padded with one space on
    each side so space-bounded numbers also match at either end.
    """
    name = PurePosixPath(filename)
    if name.suffix.lower() in VIDEO_EXTENSIONS:
        filename = filename[:-len(name.suffix)]
    return f" {filename.upper()} "


def episode_keywords(season: int, episode: int) -> list[str]:
    """All encodings of *season*/*episode* that apply to that season."""
    keywords = []
    for encoding in EPISODE_ENCODINGS:
        if encoding.applies_to(season):
            keywords.extend(encoding.render(season, episode))
    return keywords


def matches_episode_pattern(filename: str, season: int, episode: int) -> bool:
    """
    Check whether a bare filename encodes the given season and episode.

    Args:
        filename: File name without directory
        season: Season number (>= 0)
        episode: Episode number (>= 0)

    Returns:
        True if any encoding of the pair appears in the filename
    """
    text = _match_text(filename)
    return any(keyword in text for keyword in episode_keywords(season, episode))


def lookup(files: list[str], season: int, episode: int) -> str | None:
    """
    Find the video file for a given season and episode.

    Args:
        files: File paths (canonical or native)
        season: Season number
        episode: Episode number

    Returns:
        The first matching video file in input order, or None
    """
    for file in files:
        if not is_video_file(file):
            continue
        if matches_episode_pattern(basename(file), season, episode):
            return file
    return None
