import re

from coach.speech.models import QuestionEvent

# (pattern, question_type, weight); the highest matching weight wins.
QUESTION_PATTERNS = [
    (re.compile(r"\b(tell me about a time|describe a situation|give me an example)\b", re.I), "behavioral", 0.9),
    (re.compile(r"\b(challenging|difficult|problem|issue|obstacle|conflict)\b", re.I), "behavioral", 0.8),
    (re.compile(r"\b(technical|code|algorithm|programming|technology|system|architecture)\b", re.I), "technical", 0.85),
    (re.compile(r"\b(what would you do|how would you handle|if you were|hypothetically)\b", re.I), "situational", 0.8),
    (re.compile(r"\b(what|how|why|when|where|who|can you|could you|would you)\b", re.I), "general", 0.7),
    (re.compile(r"\?\s*$"), "general", 0.9),
    (re.compile(r"\b(experience with|worked on|familiar with|knowledge of)\b", re.I), "technical", 0.75),
]

SPEAKER_CHANGE_PATTERNS = [
    re.compile(r"\b(okay|alright|so|um|well|now)\b", re.I),
    re.compile(r"\.\.\."),
    re.compile(r"\b(thank you|thanks)\b", re.I),
    re.compile(r"\b(next question|moving on)\b", re.I),
]


class QuestionDetector:
    def detect(self, text: str) -> QuestionEvent:
        transcript = str(text or "").strip()
        if not transcript:
            return QuestionEvent(transcript="", is_question=False)

        best_type = "general"
        best_confidence = 0.0
        is_question = False

        for pattern, question_type, weight in QUESTION_PATTERNS:
            if pattern.search(transcript):
                is_question = True
                if weight > best_confidence:
                    best_type = question_type
                    best_confidence = weight

        return QuestionEvent(
            transcript=transcript,
            is_question=is_question,
            question_type=best_type,
            confidence=best_confidence,
            speaker_changed=self.detect_speaker_change(transcript),
            urgency=self.determine_urgency(best_type, is_question),
        )

    @staticmethod
    def determine_urgency(question_type: str, is_question: bool) -> str:
        if not is_question:
            return "low"
        if question_type in {"behavioral", "technical"}:
            return "high"
        if question_type == "situational":
            return "medium"
        return "low"

    @staticmethod
    def detect_speaker_change(transcript: str) -> bool:
        return any(pattern.search(transcript) for pattern in SPEAKER_CHANGE_PATTERNS)
