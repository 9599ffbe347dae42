import logging

logger = logging.getLogger("coach.ai_service.fallback")

LOCAL_PROVIDER_ID = "local"
LOCAL_CONFIDENCE = 0.6

_GENERIC = (
    "Take a moment to structure your response clearly using the {framework} framework.",
    "Consider providing a specific example from your experience.",
    "Focus on quantifiable results and the impact of your actions.",
    "Remember to highlight your role and contributions clearly.",
    "Think about the key skills this question is trying to assess.",
    "Structure your answer with a clear beginning, middle, and end.",
)

_KEYWORD_TEMPLATES = (
    (("team", "collaboration"), "Highlight your collaboration skills and specific contributions to the team."),
    (("challenge", "difficult"), "Focus on the problem-solving approach and what you learned."),
    (("leadership", "lead"), "Emphasize your leadership style and how you motivated others."),
)


def template_suggestion(context: str, framework: str = "star") -> str:
    lowered = str(context or "").lower()
    for keywords, template in _KEYWORD_TEMPLATES:
        if any(keyword in lowered for keyword in keywords):
            return template
    # deterministic pick so the same context yields the same hint
    index = sum(ord(ch) for ch in lowered) % len(_GENERIC)
    return _GENERIC[index].format(framework=str(framework or "star").upper())


class LocalTemplateProvider:
    """Offline last-resort provider. Never calls the network and never fails."""

    provider_id = LOCAL_PROVIDER_ID

    def __init__(self, framework: str = "star"):
        self.framework = framework

    async def generate(
        self,
        prompt: str,
        *,
        system: str = "",
        max_tokens: int = 150,
        temperature: float = 0.7,
        expect_json: bool = False,
    ) -> str:
        # No templates for structured replies; an empty answer leaves the caller's local result in place.
        if expect_json:
            return ""
        logger.info("local template suggestion served")
        return template_suggestion(prompt, self.framework)
