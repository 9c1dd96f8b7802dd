"""
Realism constants for synthetic survey data.

Everything here is plain data bundled into a frozen ``GenerationProfile``.
The defaults describe a mid-sized technology company; a JSON file can
override any field (see ``load_generation_profile``).
"""

import json
import logging
from dataclasses import dataclass, field, fields, replace
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_DEPARTMENTS = ("Engineering", "Marketing", "Sales", "Operations", "Customer Success")

# Scale answers are drawn from these arrays, so each department skews differently
DEFAULT_SCALE_SCORES = {
    "Engineering": (6, 6, 7, 7, 7, 8, 8, 5, 6, 7),
    "Marketing": (7, 8, 8, 8, 9, 9, 6, 7, 8, 8),
    "Sales": (5, 6, 6, 7, 7, 8, 4, 5, 6, 7),
    "Operations": (6, 7, 7, 8, 8, 8, 9, 5, 6, 7),
    "Customer Success": (8, 8, 9, 9, 9, 10, 7, 8, 9, 10),
}
FALLBACK_SCALE_SCORES = (6, 7, 7, 8, 8, 8, 9, 5, 6, 7)

DEFAULT_FIRST_NAMES = (
    "Alex", "Sarah", "Mike", "Lisa", "David", "Emma", "Chris", "Taylor",
    "Jordan", "Ashley", "Marcus", "Sofia", "Ryan", "Kate", "Nathan",
)
DEFAULT_LAST_NAMES = (
    "Johnson", "Smith", "Davis", "Wilson", "Brown", "Miller", "Garcia",
    "Rodriguez", "Martinez", "Anderson", "Thompson", "White", "Lee",
)
DEFAULT_ROLES = ("Individual Contributor", "Senior Specialist", "Team Lead", "Manager")

DEFAULT_POSITIVE_TEXT = {
    "Engineering": (
        "I really enjoy the technical challenges and working with modern tools.",
        "The code review process here is solid and I learn a lot from the team.",
        "Love that we get to work on interesting problems and have good autonomy.",
        "The dev environment is pretty good and the team is supportive.",
    ),
    "Marketing": (
        "I like the creative freedom we have in campaigns and the collaborative environment.",
        "The brand work is interesting and we get to try new approaches.",
        "Great team dynamics and I enjoy the variety in projects.",
        "Love working on campaigns that actually make an impact.",
    ),
    "Sales": (
        "The team support is excellent and I appreciate the clear targets.",
        "Good commission structure and the leads quality has improved.",
        "I enjoy building relationships with clients and the product sells itself.",
        "The sales tools we have are pretty solid and training is helpful.",
    ),
    "Operations": (
        "I like that we can actually improve processes and see results.",
        "Good collaboration between teams and clear workflows.",
        "The systems work well most of the time and we have good visibility.",
        "Enjoy problem-solving and the variety of challenges we handle.",
    ),
    "Customer Success": (
        "Love helping customers succeed and seeing their positive feedback.",
        "The team is supportive and we have good tools for customer management.",
        "Enjoy the relationship building and problem-solving aspects.",
        "It's rewarding when we can really help customers achieve their goals.",
    ),
}

DEFAULT_IMPROVEMENT_TEXT = {
    "Engineering": (
        "Better testing infrastructure and maybe faster CI/CD pipelines.",
        "Could use more time for technical debt and documentation.",
        "More efficient meetings and clearer product requirements would help.",
        "Better development tools and maybe more flexible work arrangements.",
    ),
    "Marketing": (
        "More budget for creative tools and better collaboration with sales.",
        "Clearer brand guidelines and more time for strategic planning.",
        "Better analytics tools and more resources for content creation.",
        "More flexibility in campaign approaches and faster approval processes.",
    ),
    "Sales": (
        "Better lead quality and more efficient CRM processes.",
        "More product training and clearer commission structures.",
        "Better sales tools and more support for complex deals.",
        "More realistic targets and better territory planning.",
    ),
    "Operations": (
        "More automation in routine processes and better system integration.",
        "Clearer communication between departments and faster decision making.",
        "Better tools for process monitoring and more resources for improvements.",
        "More efficient workflows and better documentation of procedures.",
    ),
    "Customer Success": (
        "Better integration between support tools and more proactive processes.",
        "More time for strategic customer work rather than just firefighting.",
        "Better customer data and more resources for relationship building.",
        "More efficient escalation processes and better product training.",
    ),
}

DEFAULT_CHALLENGE_TEXT = (
    "Managing multiple priorities can be tough sometimes.",
    "Communication between teams could be smoother.",
    "Balancing quality with speed is always a challenge.",
    "Keeping up with changing requirements takes effort.",
    "Resource constraints mean we have to prioritize carefully.",
)

DEFAULT_GENERAL_TEXT = (
    "It depends on the specific situation, but overall things are going well.",
    "There are definitely both positives and areas for improvement.",
    "I think we're on the right track but there's always room to grow.",
    "Overall satisfied but there are some things that could be better.",
    "It's a mixed bag - some things work great, others need work.",
)

DEFAULT_CASUAL_REPLACEMENTS = (
    ("really good", ("pretty good", "really solid", "quite nice")),
    ("very", ("super", "really", "pretty")),
    ("I think", ("I feel like", "In my opinion", "Honestly")),
    ("we need", ("we could use", "we should get", "we definitely need")),
)


def _freeze(mapping: dict) -> Mapping[str, Tuple]:
    return MappingProxyType({key: tuple(value) for key, value in mapping.items()})


@dataclass(frozen=True)
class GenerationProfile:
    """Knobs for synthetic users, scale answers and fallback text."""

    company_name: str = "TechCorp"
    email_domain: str = "techcorp.com"
    departments: Tuple[str, ...] = DEFAULT_DEPARTMENTS
    roles: Tuple[str, ...] = DEFAULT_ROLES
    first_names: Tuple[str, ...] = DEFAULT_FIRST_NAMES
    last_names: Tuple[str, ...] = DEFAULT_LAST_NAMES
    scale_scores: Mapping[str, Tuple[int, ...]] = field(default_factory=lambda: _freeze(DEFAULT_SCALE_SCORES))
    default_scale_scores: Tuple[int, ...] = FALLBACK_SCALE_SCORES
    # Departments without their own text bank borrow this one's
    fallback_department: str = "Engineering"
    positive_text: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: _freeze(DEFAULT_POSITIVE_TEXT))
    improvement_text: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: _freeze(DEFAULT_IMPROVEMENT_TEXT)
    )
    challenge_text: Tuple[str, ...] = DEFAULT_CHALLENGE_TEXT
    general_text: Tuple[str, ...] = DEFAULT_GENERAL_TEXT
    casual_replacements: Tuple[Tuple[str, Tuple[str, ...]], ...] = DEFAULT_CASUAL_REPLACEMENTS
    casual_probability: float = 0.3
    replacement_probability: float = 0.5
    lowercase_probability: float = 0.1
    hire_window_days: int = 3 * 365
    assignment_window_days: int = 7

    def scale_scores_for(self, department: Optional[str]) -> Tuple[int, ...]:
        return self.scale_scores.get(department or "", self.default_scale_scores)

    def positive_text_for(self, department: Optional[str]) -> Tuple[str, ...]:
        return self.positive_text.get(department or "") or self.positive_text[self.fallback_department]

    def improvement_text_for(self, department: Optional[str]) -> Tuple[str, ...]:
        return self.improvement_text.get(department or "") or self.improvement_text[self.fallback_department]


_MAPPING_FIELDS = {"scale_scores", "positive_text", "improvement_text"}


def _coerce(name: str, value):
    if name in _MAPPING_FIELDS:
        return _freeze(value)
    if name == "casual_replacements":
        return tuple((phrase, tuple(options)) for phrase, options in value)
    if isinstance(value, list):
        return tuple(value)
    return value


def load_generation_profile(path: Optional[str] = None) -> GenerationProfile:
    """Build a profile, overlaying any fields found in the JSON file at ``path``.

    Unknown keys are ignored with a warning so an old override file keeps working.
    """
    profile = GenerationProfile()
    if not path:
        return profile

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    known = {f.name for f in fields(GenerationProfile)}
    overrides = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning(f"Ignoring unknown generation profile key: {key}")
            continue
        overrides[key] = _coerce(key, value)

    logger.info(f"Loaded generation profile overrides from {path}: {sorted(overrides)}")
    return replace(profile, **overrides)


@lru_cache()
def get_generation_profile() -> GenerationProfile:
    """Profile configured for this process."""
    from survey_analytics.config import settings

    return load_generation_profile(settings.GENERATION_PROFILE_PATH)
