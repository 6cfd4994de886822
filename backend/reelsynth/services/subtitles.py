import math
from typing import List, Sequence, Union

from reelsynth.models import CaptionWord, SubtitleCue


def format_time(ms: Union[int, float]) -> str:
    """
    Format milliseconds as an SRT timestamp (HH:MM:SS,mmm), flooring every field.

    format_time(0) == "00:00:00,000"
    format_time(61234) == "00:01:01,234"
    """
    total_ms = max(0, int(math.floor(ms)))
    hours = total_ms // 3_600_000
    minutes = (total_ms % 3_600_000) // 60_000
    seconds = (total_ms % 60_000) // 1000
    millis = total_ms % 1000
    return f"{hours:02d}:{minutes:02d}:{seconds:02d},{millis:03d}"


def scene_duration_seconds(track: Sequence[CaptionWord]) -> float:
    """The last word's end time is the authoritative scene duration (2 decimals)."""
    if not track:
        raise ValueError("Caption track is empty")
    return round(track[-1].end_ms / 1000.0, 2)


def group_cues(track: Sequence[CaptionWord], words_per_cue: int) -> List[SubtitleCue]:
    """
    Group consecutive words into cues of at most `words_per_cue` words.
    The final cue takes whatever words remain.
    """
    if words_per_cue < 1:
        raise ValueError("words_per_cue must be >= 1")

    cues: List[SubtitleCue] = []
    current: List[CaptionWord] = []
    last = len(track) - 1

    for i, word in enumerate(track):
        current.append(word)
        if len(current) == words_per_cue or i == last:
            cues.append(
                SubtitleCue(
                    index=len(cues) + 1,
                    start_ms=current[0].start_ms,
                    end_ms=current[-1].end_ms,
                    text=" ".join(w.text for w in current),
                )
            )
            current = []

    return cues


def build_srt(cues: Sequence[SubtitleCue]) -> str:
    """Serialize cues as SRT: index, time range, text, blank line."""
    blocks = []
    for cue in cues:
        blocks.append(
            f"{cue.index}\n"
            f"{format_time(cue.start_ms)} --> {format_time(cue.end_ms)}\n"
            f"{cue.text}\n"
            "\n"
        )
    return "".join(blocks)
