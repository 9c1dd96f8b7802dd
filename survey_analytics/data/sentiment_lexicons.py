"""Keyword lists used by the rule-based sentiment and summary paths.

Matching is case-insensitive substring matching, so stems such as
``frustrat`` or ``satisfi`` cover their inflections.
"""

import re


def _unique(words: str) -> tuple:
    return tuple(dict.fromkeys(words.split()))


POSITIVE_KEYWORDS = _unique(
    """
    excellent great amazing wonderful fantastic outstanding superb brilliant good better best
    love enjoy appreciate satisfied happy pleased delighted thrilled excited glad
    effective efficient productive successful beneficial valuable helpful useful
    strong solid reliable consistent stable smooth easy simple clear
    supportive collaborative friendly welcoming inclusive respectful professional
    innovative creative flexible adaptable responsive quick fast convenient
    improved enhanced optimized streamlined perfect ideal
    positive upbeat motivated inspired confident proud accomplished fulfilled
    awesome incredible marvelous splendid terrific magnificent
    """
)

NEGATIVE_KEYWORDS = _unique(
    """
    terrible awful horrible disgusting disappointing frustrating annoying bad worse worst
    hate dislike despise loathe detest resent regret worry concern fear
    ineffective inefficient unproductive unsuccessful problematic useless harmful
    weak unreliable inconsistent unstable broken difficult complex confusing
    unsupportive uncooperative unfriendly unwelcoming exclusive disrespectful unprofessional
    outdated inflexible unresponsive slow sluggish inconvenient complicated messy
    degraded reduced compromised imperfect flawed
    negative pessimistic demotivated uninspired stressed overwhelmed burned exhausted
    problem issue challenge struggle difficulty obstacle barrier
    lack missing absent insufficient inadequate limited restricted constrained
    expensive costly overpriced unaffordable wasteful unnecessary redundant
    """
)

# Per-question summaries
SUMMARY_STOPWORDS = frozenset(
    """
    the and or but for with this that from they them their there here when what where how why
    would could should will can may might must have has had been being was were are not dont
    doesn't won't can't isn't aren't wasn't weren't
    """.split()
)

SUMMARY_POSITIVE_PATTERN = re.compile(
    r"good|great|excellent|love|enjoy|positive|happy|satisfied", re.IGNORECASE
)
SUMMARY_NEGATIVE_PATTERN = re.compile(
    r"bad|poor|terrible|hate|dislike|negative|unhappy|frustrated", re.IGNORECASE
)

CONCERN_KEYWORDS = (
    "problem", "issue", "concern", "difficult", "challenge", "struggle",
    "lack", "need", "improve", "frustrat", "disappoint", "confus",
)
PRAISE_KEYWORDS = (
    "good", "great", "excellent", "love", "enjoy", "appreciate",
    "like", "strong", "effective", "satisfi", "happy", "support",
)

PATTERN_CONCERN = re.compile(r"problem|issue|concern|difficult|challenge", re.IGNORECASE)
PATTERN_PRAISE = re.compile(r"good|great|excellent|love|enjoy|appreciate", re.IGNORECASE)
