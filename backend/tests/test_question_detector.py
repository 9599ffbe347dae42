from coach.speech.question_detector import QuestionDetector


def test_behavioral_prompt_wins_with_high_urgency():
    event = QuestionDetector().detect("Tell me about a time you handled pressure")
    assert event.is_question is True
    assert event.question_type == "behavioral"
    assert event.confidence == 0.9
    assert event.urgency == "high"


def test_situational_question():
    event = QuestionDetector().detect("Hypothetically, imagine the launch slips a week")
    assert event.question_type == "situational"
    assert event.urgency == "medium"


def test_trailing_question_mark_counts():
    event = QuestionDetector().detect("Ready to begin?")
    assert event.is_question is True
    assert event.confidence == 0.9


def test_statement_is_not_a_question():
    event = QuestionDetector().detect("I led the migration last year.")
    assert event.is_question is False
    assert event.confidence == 0.0
    assert event.urgency == "low"


def test_blank_text():
    event = QuestionDetector().detect("   ")
    assert event.is_question is False
    assert event.transcript == ""


def test_speaker_change_markers():
    assert QuestionDetector.detect_speaker_change("Okay, next question please") is True
    assert QuestionDetector.detect_speaker_change("I shipped the feature") is False
