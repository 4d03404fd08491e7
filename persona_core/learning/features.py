"""Style features extracted from a generated response.

The feature vector is a handful of cheap textual signals describing how a
response was written: how long it was, whether it used code, emoji, humor,
examples or structure. These are the only inputs the adjustment calculator
sees about a response, so extraction is pure and deterministic.
"""

import re
from dataclasses import dataclass
from enum import Enum

SHORT_MAX_CHARS = 300
VERBOSE_MIN_CHARS = 1000
VERY_VERBOSE_MIN_CHARS = 2000


class LengthBucket(str, Enum):
    """Response length category."""

    SHORT = "short"
    NORMAL = "normal"
    VERBOSE = "verbose"
    VERY_VERBOSE = "very_verbose"


@dataclass(frozen=True)
class FeatureVector:
    """Style signals of one response.

    Attributes:
        length_bucket: Length category of the response
        has_code: Contains code fences or inline code
        has_emoji: Contains emoji
        has_humor: Contains humor markers
        has_examples: Contains example phrases
        is_structured: Contains list items or headings
    """

    length_bucket: LengthBucket = LengthBucket.SHORT
    has_code: bool = False
    has_emoji: bool = False
    has_humor: bool = False
    has_examples: bool = False
    is_structured: bool = False

    def to_dict(self) -> dict:
        return {
            "length_bucket": self.length_bucket.value,
            "has_code": self.has_code,
            "has_emoji": self.has_emoji,
            "has_humor": self.has_humor,
            "has_examples": self.has_examples,
            "is_structured": self.is_structured,
        }


EMOJI_PATTERN = re.compile(
    "[\U0001F600-\U0001F64F"  # emoticons
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F680-\U0001F6FF"  # transport & map
    "\u2600-\u26FF"  # misc symbols
    "\u2700-\u27BF]"  # dingbats
)

HUMOR_MARKERS = ("!", "ㅋㅋ", "ㅎㅎ", "funny", "joke", "haha", "😄", "😊", "😂", "🤣")

EXAMPLE_MARKERS = ("for example", "for instance", "e.g.", "such as", "예를 들어", "예시", "예:")

STRUCTURE_PATTERN = re.compile(r"\n(?:[-*]|\d+\.)|##")


def classify_length(length: int) -> LengthBucket:
    """Map a character count to a LengthBucket."""
    if length > VERY_VERBOSE_MIN_CHARS:
        return LengthBucket.VERY_VERBOSE
    if length > VERBOSE_MIN_CHARS:
        return LengthBucket.VERBOSE
    if length < SHORT_MAX_CHARS:
        return LengthBucket.SHORT
    return LengthBucket.NORMAL


def extract_features(text: str) -> FeatureVector:
    """Extract style features from response text.

    Never raises: empty or non-string input yields a short, signal-free
    vector.
    """
    if not isinstance(text, str) or not text:
        return FeatureVector()

    lowered = text.lower()

    return FeatureVector(
        length_bucket=classify_length(len(text)),
        has_code="`" in text,
        has_emoji=EMOJI_PATTERN.search(text) is not None,
        has_humor=any(marker in lowered for marker in HUMOR_MARKERS),
        has_examples=any(marker in lowered for marker in EXAMPLE_MARKERS),
        is_structured=STRUCTURE_PATTERN.search(text) is not None,
    )
