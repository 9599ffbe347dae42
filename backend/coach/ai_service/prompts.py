import json

SUGGESTION_SYSTEM_PROMPT = "You are a professional interview and meeting coach."

FRAMEWORKS = {
    "star": "Structure the response using STAR (Situation, Task, Action, Result)",
    "soar": "Use SOAR (Situation, Obstacles, Actions, Results)",
    "prep": "Apply PREP (Point, Reason, Example, Point)",
    "car": "Use CAR (Challenge, Action, Result)",
    "soal": "Apply SOAL (Situation, Objective, Action, Learning)",
}

QUESTION_TYPES = {
    "behavioral": "This is a behavioral question requiring specific examples",
    "technical": "This is a technical question requiring a clear explanation",
    "situational": "This is a situational question requiring hypothetical reasoning",
    "general": "This is a general question",
}

RESPONSE_STYLES = {
    "concise": "one sentence",
    "balanced": "1-2 sentences",
    "detailed": "3-4 sentences",
}


def build_suggestion_prompt(context: str, question_type: str, framework: str, response_style: str = "balanced") -> str:
    question_hint = QUESTION_TYPES.get(question_type, QUESTION_TYPES["general"])
    framework_hint = FRAMEWORKS.get(framework, FRAMEWORKS["star"])
    length_hint = RESPONSE_STYLES.get(response_style, RESPONSE_STYLES["balanced"])

    return f"""
You are an expert coach providing real-time assistance during a live conversation.

{context}

Question type: {question_hint}
Framework: {framework_hint}

Provide a concise, actionable suggestion ({length_hint}) to help the speaker respond effectively.
Focus on:
- Key points to mention
- Structure for the response
- Specific advice for this situation

Be supportive, specific and immediately actionable. Avoid generic advice.
""".strip()


REPORT_SYSTEM_PROMPT = "You are a strict JSON generator. Output JSON only."


def build_performance_report_prompt(payload: dict) -> str:
    """
    Prompt for the end-of-session report.
    Called once per session, after capture has stopped.
    """

    return f"""
You are a senior communication coach reviewing a completed live session.

Based on the session data below, generate an honest performance report.

Rules:
- Be professional and encouraging
- Highlight strengths and improvement areas
- Scores are integers from 0 to 100
- Do NOT mention AI, models, or internal metrics
- Do NOT repeat the raw transcript

Session data:
{json.dumps(payload, ensure_ascii=False, default=str)}

Return STRICT JSON only in this format:
{{
  "metrics": {{
    "communicationScore": 0,
    "technicalScore": 0,
    "leadershipScore": 0,
    "confidenceScore": 0,
    "clarityScore": 0,
    "responseRelevanceScore": 0,
    "overallScore": 0
  }},
  "summary": "string",
  "strengths": ["string"],
  "improvements": ["string"],
  "recommendations": ["string"],
  "nextSteps": ["string"]
}}
""".strip()
