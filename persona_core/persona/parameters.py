"""Persona parameter catalogue and the bounded PersonaVector.

Every persona parameter is a trait on a 0-100 scale, where 50 is the
neutral center. The vector is ordered: iteration always follows
PARAMETER_NAMES so snapshots, checkpoints and logs line up field by field.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

PARAMETER_MIN = 0.0
PARAMETER_MAX = 100.0
NEUTRAL_VALUE = 50.0


# =============================================================================
# Catalogue
# =============================================================================

# (name, default, low description, high description)
_CATALOGUE: tuple[tuple[str, float, str, str], ...] = (
    # Communication style
    ("formality", 50.0, "very casual", "very formal"),
    ("verbosity", 50.0, "concise", "detailed"),
    ("humor", 40.0, "serious", "humorous"),
    ("enthusiasm", 60.0, "neutral", "enthusiastic"),
    ("empathy", 70.0, "factual", "emotionally supportive"),
    ("friendliness", 70.0, "professional", "friendly"),
    ("assertiveness", 50.0, "suggestive", "directive"),
    ("patience", 80.0, "brief", "very patient"),
    # Tone & personality
    ("optimism", 60.0, "realistic", "optimistic"),
    ("playfulness", 40.0, "serious", "playful"),
    ("creativity", 50.0, "conventional", "creative"),
    ("technicality", 50.0, "simple terms", "technical jargon"),
    ("directness", 60.0, "indirect", "direct"),
    # Response characteristics
    ("emoji_usage", 30.0, "no emojis", "frequent emojis"),
    ("code_snippets", 50.0, "text explanations", "code-heavy"),
    ("structured_output", 50.0, "flowing text", "lists and headings"),
    ("markdown", 50.0, "plain formatting", "rich markdown"),
    ("example_usage", 50.0, "few examples", "many examples"),
    ("analogy", 40.0, "rarely uses analogies", "frequent analogies"),
    ("questioning", 40.0, "rarely asks", "often asks"),
    ("reasoning_depth", 60.0, "quick answers", "deep reasoning"),
    ("context_awareness", 70.0, "literal", "reads between lines"),
    # Proactivity
    ("proactiveness", 40.0, "reactive only", "very proactive"),
    ("interruptiveness", 20.0, "never interrupts", "interrupts when helpful"),
    ("suggestion_frequency", 40.0, "rare suggestions", "frequent suggestions"),
    # Interaction style
    ("confirmation", 50.0, "assumes intent", "always confirms"),
    ("error_tolerance", 70.0, "strict", "forgiving"),
    ("learning_focus", 50.0, "gives answers", "teaches concepts"),
)

PARAMETER_NAMES: tuple[str, ...] = tuple(entry[0] for entry in _CATALOGUE)

DEFAULT_VALUES: Mapping[str, float] = MappingProxyType(
    {name: default for name, default, _, _ in _CATALOGUE}
)

PARAMETER_DESCRIPTIONS: Mapping[str, tuple[str, str]] = MappingProxyType(
    {name: (low, high) for name, _, low, high in _CATALOGUE}
)


def clamp_value(value: float) -> float:
    """Clamp a raw value into the persona range [0, 100]."""
    return max(PARAMETER_MIN, min(PARAMETER_MAX, float(value)))


# =============================================================================
# PersonaVector
# =============================================================================


@dataclass
class PersonaVector:
    """Ordered, bounded mapping of persona parameters.

    Values outside [0, 100] are clamped on construction and on every write,
    so no sequence of updates can leave the vector out of range. Names not
    in the catalogue are rejected on write and ignored on load.

    Attributes:
        values: Parameter name -> value, ordered like PARAMETER_NAMES
    """

    values: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_VALUES))

    def __post_init__(self):
        merged = dict(DEFAULT_VALUES)
        for name, value in self.values.items():
            if name in merged:
                merged[name] = clamp_value(value)
        self.values = {name: merged[name] for name in PARAMETER_NAMES}

    def __getitem__(self, name: str) -> float:
        return self.values[name]

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def set(self, name: str, value: float) -> float:
        """Set one parameter, clamping into range.

        Returns:
            The value actually stored
        """
        if name not in self.values:
            raise KeyError(f"Unknown persona parameter: {name}")
        stored = clamp_value(value)
        self.values[name] = stored
        return stored

    def with_updates(self, updates: Mapping[str, float]) -> "PersonaVector":
        """Return a new vector with the given parameters replaced."""
        updated = self.copy()
        for name, value in updates.items():
            updated.set(name, value)
        return updated

    def copy(self) -> "PersonaVector":
        return PersonaVector(values=dict(self.values))

    def as_mapping(self) -> Mapping[str, float]:
        """Read-only view of the live values."""
        return MappingProxyType(self.values)

    def distance_l1(self, other: "PersonaVector") -> float:
        """Sum of absolute per-parameter differences."""
        return sum(abs(self.values[name] - other.values[name]) for name in PARAMETER_NAMES)

    def to_dict(self) -> dict:
        """Serialize for storage."""
        return dict(self.values)

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "PersonaVector":
        """Deserialize from storage; missing names take their defaults."""
        return cls(values={k: float(v) for k, v in data.items() if k in DEFAULT_VALUES})

    @classmethod
    def defaults(cls) -> "PersonaVector":
        return cls()


# =============================================================================
# Presets
# =============================================================================


@dataclass(frozen=True)
class PersonaPreset:
    """A named starting point for the persona."""

    name: str
    description: str
    overrides: Mapping[str, float] = field(default_factory=dict)

    def build(self) -> PersonaVector:
        return PersonaVector.defaults().with_updates(self.overrides)


PERSONA_PRESETS: tuple[PersonaPreset, ...] = (
    PersonaPreset(name="Default", description="Balanced, friendly assistant"),
    PersonaPreset(
        name="Professional",
        description="Formal, technical, and concise",
        overrides={
            "formality": 80.0,
            "humor": 20.0,
            "verbosity": 40.0,
            "emoji_usage": 10.0,
            "enthusiasm": 40.0,
            "directness": 80.0,
            "technicality": 80.0,
        },
    ),
    PersonaPreset(
        name="Casual Friend",
        description="Relaxed, funny, and supportive",
        overrides={
            "formality": 20.0,
            "humor": 80.0,
            "verbosity": 60.0,
            "emoji_usage": 70.0,
            "enthusiasm": 80.0,
            "empathy": 90.0,
        },
    ),
    PersonaPreset(
        name="Teacher",
        description="Patient, detailed explanations",
        overrides={
            "formality": 60.0,
            "verbosity": 80.0,
            "patience": 100.0,
            "reasoning_depth": 80.0,
            "technicality": 60.0,
            "learning_focus": 80.0,
        },
    ),
)


def get_preset(name: str) -> Optional[PersonaPreset]:
    """Look up a preset by name (case-insensitive)."""
    wanted = name.strip().lower()
    for preset in PERSONA_PRESETS:
        if preset.name.lower() == wanted:
            return preset
    return None
