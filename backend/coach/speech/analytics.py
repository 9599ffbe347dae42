from __future__ import annotations

import re
from typing import Iterable, Sequence

from coach.speech.models import SpeechAnalytics, TranscriptSegment

FILLER_WORDS = {
    "um", "uh", "like", "so", "actually", "basically", "literally",
    "well", "right", "okay", "anyway", "whatever",
}
FILLER_PHRASES = ("you know", "sort of", "kind of", "i mean", "stuff like that")

FILLER_WINDOW_WORDS = 50
SPEAKING_RATIO = 0.7

_WORD_CLEAN = re.compile(r"[^\w\s']")


def _words(text: str) -> list[str]:
    return [w for w in str(text or "").lower().split() if w]


def _clean(word: str) -> str:
    return _WORD_CLEAN.sub("", word)


def count_filler_words(words: Sequence[str]) -> int:
    """Count single-word fillers plus multi-word filler phrases in `words`."""
    remaining = " ".join(_clean(w) for w in words)
    count = 0
    # Phrases first so "stuff like that" is not also counted as "like".
    for phrase in sorted(FILLER_PHRASES, key=len, reverse=True):
        pattern = r"\b" + re.escape(phrase) + r"\b"
        count += len(re.findall(pattern, remaining))
        remaining = re.sub(pattern, " ", remaining)
    count += sum(1 for w in remaining.split() if w in FILLER_WORDS)
    return count


def compute_speech_analytics(
    segments: Iterable[TranscriptSegment],
    session_start_ms: int | None = None,
) -> SpeechAnalytics:
    """
    Derive analytics from the full ordered segment list.

    Pure: elapsed time comes from segment timestamps, never from the wall
    clock, so the same segments always give the same analytics.
    """
    ordered = list(segments or [])
    if not ordered:
        return SpeechAnalytics()

    final_words: list[str] = []
    for segment in ordered:
        if segment.is_final:
            final_words.extend(_words(segment.text))

    start_ms = ordered[0].timestamp_ms if session_start_ms is None else int(session_start_ms)
    elapsed_sec = max(0.0, (ordered[-1].timestamp_ms - start_ms) / 1000.0)
    speaking_sec = elapsed_sec * SPEAKING_RATIO
    pause_sec = max(0.0, elapsed_sec - speaking_sec)

    total_words = len(final_words)
    wpm = int(round((total_words / speaking_sec) * 60)) if speaking_sec > 0 else 0

    fillers = count_filler_words(final_words[-FILLER_WINDOW_WORDS:])

    mean_confidence = sum(s.confidence for s in ordered) / len(ordered)
    confidence_score = int(round(max(0.0, min(100.0, mean_confidence * 100.0))))

    return SpeechAnalytics(
        words_per_minute=max(0, wpm),
        filler_word_count=max(0, fillers),
        confidence_score=confidence_score,
        total_words=total_words,
        speaking_time_seconds=round(speaking_sec, 2),
        pause_duration_seconds=round(pause_sec, 2),
    )


class SpeechAnalyticsAccumulator:
    """Keeps the ordered segments of one session and recomputes on every append."""

    def __init__(self, session_start_ms: int | None = None):
        self.session_start_ms = session_start_ms
        self._segments: list[TranscriptSegment] = []
        self._analytics = SpeechAnalytics()

    def reset(self, session_start_ms: int | None = None) -> None:
        self.session_start_ms = session_start_ms
        self._segments = []
        self._analytics = SpeechAnalytics()

    def add_segment(self, segment: TranscriptSegment) -> SpeechAnalytics:
        self._segments.append(segment)
        self._analytics = compute_speech_analytics(self._segments, self.session_start_ms)
        return self._analytics

    def replace_segments(self, segments: Iterable[TranscriptSegment]) -> SpeechAnalytics:
        self._segments = list(segments or [])
        self._analytics = compute_speech_analytics(self._segments, self.session_start_ms)
        return self._analytics

    @property
    def segments(self) -> list[TranscriptSegment]:
        return list(self._segments)

    @property
    def analytics(self) -> SpeechAnalytics:
        return self._analytics
