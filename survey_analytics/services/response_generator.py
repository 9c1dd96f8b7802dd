"""Free-text answers for synthetic respondents.

Answers come from the AI client in the voice of a persona, with light
post-processing so they read less polished. When the AI is unavailable a
keyword-matched fallback bank is used instead.
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from survey_analytics.core.metrics import track_ai_request
from survey_analytics.data.generation_profiles import GenerationProfile, get_generation_profile
from survey_analytics.exceptions import AIServiceError

logger = logging.getLogger(__name__)

_WRAPPING_QUOTES = re.compile(r"^[\"']|[\"']$")


@dataclass(frozen=True)
class Persona:
    name: str
    department: Optional[str]
    role: Optional[str]


def persona_system_prompt(persona: Persona, company_name: str) -> str:
    return f"""You are generating realistic survey responses from employees at a technology company called {company_name}.

Context:
- Department: {persona.department or "General"}
- Role: {persona.role or "Employee"}
- Employee: {persona.name}

Generate ONE realistic response to the survey question. The response should:
1. Sound like a real person, not corporate speak
2. Be 1-3 sentences (vary the length)
3. Include some personality and authentic voice
4. Reflect the employee's department and role perspective
5. Use casual, conversational language
6. Sometimes include minor imperfections (casual grammar, contractions)
7. Show varied sentiment - not all positive or negative

Department context:
- Engineering: Technical focus, mentions tools, processes, code, systems
- Marketing: Brand, campaigns, creativity, customer engagement
- Sales: Targets, clients, revenue, relationships, quotas
- Operations: Efficiency, logistics, processes, coordination
- Customer Success: Support, satisfaction, relationships, feedback

Response tone should be professional but human - like someone actually filling out a survey.
Reply with the response text only."""


class RealisticResponseGenerator:
    """Writes one text answer per call. Returns ``(text, source)``."""

    def __init__(
        self,
        ai_client,
        profile: Optional[GenerationProfile] = None,
        rng: Optional[random.Random] = None,
    ):
        self.ai_client = ai_client
        self.profile = profile or get_generation_profile()
        self.rng = rng or random.Random()

    async def generate(self, question_text: str, persona: Persona) -> Tuple[str, str]:
        try:
            raw = await self.ai_client.complete(
                f'Question: "{question_text}"\n\nGenerate a realistic response:',
                system_prompt=persona_system_prompt(persona, self.profile.company_name),
            )
            text = _WRAPPING_QUOTES.sub("", raw.strip()).strip()
            if not text:
                raise AIServiceError("AI returned an empty response")
        except AIServiceError as e:
            logger.warning(f"AI response generation failed ({getattr(e, 'kind', 'ai_error')}), using fallback: {e}")
            track_ai_request("response_generation", success=False)
            return self.fallback_response(question_text, persona.department), "fallback"

        track_ai_request("response_generation", success=True)
        return self.roughen(text), "ai"

    def roughen(self, text: str) -> str:
        """Occasionally swap in casual phrasing or flatten capitalization."""
        profile = self.profile
        if self.rng.random() < profile.casual_probability:
            for phrase, options in profile.casual_replacements:
                if self.rng.random() < profile.replacement_probability:
                    replacement = self.rng.choice(options)
                    text = re.sub(rf"\b{re.escape(phrase)}\b", replacement, text, flags=re.IGNORECASE)

        if self.rng.random() < profile.lowercase_probability:
            text = text.lower().capitalize()
        return text

    def fallback_response(self, question_text: str, department: Optional[str]) -> str:
        """Pick a canned answer matched on the question's wording."""
        lowered = (question_text or "").lower()
        profile = self.profile

        if "enjoy" in lowered or "like" in lowered:
            pool = profile.positive_text_for(department)
        elif "improve" in lowered or "better" in lowered or "change" in lowered:
            pool = profile.improvement_text_for(department)
        elif "challenge" in lowered or "difficult" in lowered:
            pool = profile.challenge_text
        else:
            pool = profile.general_text
        return self.rng.choice(pool)
