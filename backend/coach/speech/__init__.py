from coach.speech.analytics import SpeechAnalyticsAccumulator, compute_speech_analytics
from coach.speech.models import QuestionEvent, SpeechAnalytics, TranscriptSegment
from coach.speech.question_detector import QuestionDetector

__all__ = [
    "QuestionDetector",
    "QuestionEvent",
    "SpeechAnalytics",
    "SpeechAnalyticsAccumulator",
    "TranscriptSegment",
    "compute_speech_analytics",
]
