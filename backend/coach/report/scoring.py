from __future__ import annotations

import re

from coach.ai_service.models import PerformanceMetrics
from coach.speech.analytics import count_filler_words
from coach.speech.models import SpeechAnalytics

POSITIVE_CUES = ("confident", "experienced", "successfully", "achieved", "led", "managed", "delivered")
NEGATIVE_CUES = ("maybe", "i think", "probably", "not sure", "kind of", "sort of")
TECHNICAL_CUES = ("implemented", "designed", "architected", "optimized", "developed", "deployed", "scaled", "tested")
LEADERSHIP_CUES = ("led", "managed", "coordinated", "mentored", "guided", "influenced", "motivated", "delegated")
TEAM_CUES = ("team", "collaboration", "stakeholders", "cross-functional", "partnership")
STRUCTURE_CUES = ("first", "then", "finally", "because", "result", "situation", "task", "action", "outcome")

_WEIGHTS = {
    "communication": 0.25,
    "technical": 0.15,
    "leadership": 0.15,
    "confidence": 0.15,
    "clarity": 0.15,
    "relevance": 0.15,
}


def _clamp(value: float) -> int:
    return int(round(min(100.0, max(0.0, float(value)))))


def _hits(text: str, cues) -> int:
    return sum(1 for cue in cues if cue in text)


def _avg_sentence_length(transcript: str, word_count: int) -> float:
    sentences = [s for s in re.split(r"[.!?]+", transcript) if s.strip()]
    return word_count / max(1, len(sentences))


def communication_score(analytics: SpeechAnalytics, transcript: str) -> int:
    score = 50.0
    wpm = analytics.words_per_minute
    if 120 <= wpm <= 150:
        score += 20
    elif 100 <= wpm <= 170:
        score += 15
    elif 80 <= wpm <= 180:
        score += 10

    words = transcript.split()
    filler_pct = count_filler_words(words) / max(1, len(words)) * 100
    if filler_pct < 2:
        score += 20
    elif filler_pct < 5:
        score += 15
    elif filler_pct < 10:
        score += 10
    else:
        score -= 5

    avg_len = _avg_sentence_length(transcript, len(words))
    if 10 <= avg_len <= 20:
        score += 10
    elif 8 <= avg_len <= 25:
        score += 5
    return _clamp(score)


def clarity_score(analytics: SpeechAnalytics, transcript: str) -> int:
    score = 50.0 + ((analytics.confidence_score or 70) - 70) * 0.3
    words = transcript.lower().split()
    avg_len = _avg_sentence_length(transcript, len(words))
    if 10 <= avg_len <= 20:
        score += 25
    elif 8 <= avg_len <= 25:
        score += 15

    diversity = len(set(words)) / max(1, len(words))
    if diversity > 0.7:
        score += 25
    elif diversity > 0.5:
        score += 15
    return _clamp(score)


def confidence_score(analytics: SpeechAnalytics, transcript: str) -> int:
    lowered = transcript.lower()
    score = 50.0
    score += min(_hits(lowered, POSITIVE_CUES) * 3, 30)
    score -= min(_hits(lowered, NEGATIVE_CUES) * 5, 20)
    score += ((analytics.confidence_score or 70) - 70) * 0.5
    return _clamp(score)


def score_session(transcript: str, analytics: SpeechAnalytics) -> PerformanceMetrics:
    """Keyword and pace heuristics; used as the baseline under any AI-provided scores."""
    lowered = transcript.lower()

    communication = communication_score(analytics, transcript)
    technical = _clamp(50 + min(_hits(lowered, TECHNICAL_CUES) * 5, 50))
    leadership = _clamp(50 + min(_hits(lowered, LEADERSHIP_CUES) * 5, 25) + min(_hits(lowered, TEAM_CUES) * 3, 25))
    confidence = confidence_score(analytics, transcript)
    clarity = clarity_score(analytics, transcript)
    relevance = _clamp(50 + min(_hits(lowered, STRUCTURE_CUES) * 5, 50))

    overall = _clamp(
        communication * _WEIGHTS["communication"]
        + technical * _WEIGHTS["technical"]
        + leadership * _WEIGHTS["leadership"]
        + confidence * _WEIGHTS["confidence"]
        + clarity * _WEIGHTS["clarity"]
        + relevance * _WEIGHTS["relevance"]
    )

    return PerformanceMetrics(
        communication_score=communication,
        technical_score=technical,
        leadership_score=leadership,
        confidence_score=confidence,
        clarity_score=clarity,
        response_relevance_score=relevance,
        overall_score=overall,
    )


def describe_session(metrics: PerformanceMetrics, analytics: SpeechAnalytics) -> dict[str, list[str]]:
    strengths: list[str] = []
    improvements: list[str] = []

    if 120 <= analytics.words_per_minute <= 150:
        strengths.append("Comfortable speaking pace")
    elif analytics.words_per_minute > 170:
        improvements.append("Slow down slightly so key points land")
    elif 0 < analytics.words_per_minute < 100:
        improvements.append("Pick up the pace a little to keep listeners engaged")

    if analytics.filler_word_count <= 2:
        strengths.append("Minimal filler words")
    else:
        improvements.append("Reduce filler words by pausing instead")

    if metrics.confidence_score >= 70:
        strengths.append("Confident delivery")
    else:
        improvements.append("Use more decisive language about your contributions")

    if metrics.response_relevance_score < 60:
        improvements.append("Structure answers with a clear beginning, middle and result")

    recommendations = [f"Work on: {item.lower()}" for item in improvements[:3]]
    if not recommendations:
        recommendations.append("Keep practicing with varied question types")

    return {
        "strengths": strengths,
        "improvements": improvements,
        "recommendations": recommendations,
        "next_steps": ["Review this session's transcript", "Practice one answer using the STAR framework"],
    }
