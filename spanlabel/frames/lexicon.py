"""Static frame definitions: lexical units and frame elements.

Loaded once and injected into :class:`~spanlabel.frames.FrameDisambiguator`;
tests build synthetic frames with :func:`make_frame`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping


@dataclass(frozen=True)
class FrameElement:
    required: bool
    maps_to: str


@dataclass(frozen=True)
class Frame:
    """A semantic frame evoked by a set of surface terms.

    ``lexical_units`` maps a lexical category (``"pan"``, ``"locomotion"``)
    to the surface forms that evoke it.  ``ambiguous_terms`` are surface
    forms shared with another frame; they only evoke this frame when the
    caller supplies a positive context signal.
    """

    name: str
    role: str
    lexical_units: Mapping[str, frozenset[str]]
    frame_elements: Mapping[str, FrameElement]
    ambiguous_terms: frozenset[str] = frozenset()
    category_roles: Mapping[str, str] = field(default_factory=dict)

    def lookup(self, term: str) -> str | None:
        """Return the lexical category for *term*, if any."""
        folded = (term or "").strip().lower()
        for category, terms in self.lexical_units.items():
            if folded in terms:
                return category
        return None

    def role_for(self, category: str) -> str:
        return self.category_roles.get(category, self.role)

    @property
    def all_terms(self) -> frozenset[str]:
        out: set[str] = set()
        for terms in self.lexical_units.values():
            out.update(terms)
        return frozenset(out)


def make_frame(
    name: str,
    role: str,
    lexical_units: Mapping[str, Iterable[str]],
    frame_elements: Mapping[str, tuple[bool, str]],
    ambiguous_terms: Iterable[str] = (),
    category_roles: Mapping[str, str] | None = None,
) -> Frame:
    """Build an immutable :class:`Frame` from plain Python data."""
    return Frame(
        name=name,
        role=role,
        lexical_units=MappingProxyType(
            {cat: frozenset(t.lower() for t in terms) for cat, terms in lexical_units.items()}
        ),
        frame_elements=MappingProxyType(
            {fe: FrameElement(required, maps_to) for fe, (required, maps_to) in frame_elements.items()}
        ),
        ambiguous_terms=frozenset(t.lower() for t in ambiguous_terms),
        category_roles=MappingProxyType(dict(category_roles or {})),
    )


# ---------------------------------------------------------------------------
# Shared word lists
# ---------------------------------------------------------------------------

DIRECTIONS: frozenset[str] = frozenset({
    "left", "right", "up", "down", "in", "out", "forward", "forwards",
    "backward", "backwards", "back", "upward", "upwards", "downward",
    "downwards", "sideways", "laterally", "clockwise", "counterclockwise",
    "overhead", "skyward",
})

CAMERA_KEYWORDS: tuple[str, ...] = ("camera", "lens")

SPEED_ADVERBS: frozenset[str] = frozenset({
    "slowly", "quickly", "rapidly", "gently", "smoothly", "steadily",
    "gradually", "swiftly", "abruptly", "suddenly", "briskly", "lazily",
    "gracefully", "energetically", "carefully", "fast", "slow",
})

LIGHT_QUALITY_WORDS: frozenset[str] = frozenset({
    "soft", "hard", "harsh", "diffused", "diffuse", "dramatic", "dim",
    "bright", "moody", "natural", "ambient", "warm", "cool", "cold",
    "golden", "dappled", "low-key", "high-key", "rim", "volumetric",
    "flickering", "neon", "gentle", "muted",
})


# ---------------------------------------------------------------------------
# Frames
# ---------------------------------------------------------------------------

CINEMATOGRAPHY_FRAME = make_frame(
    name="Cinematography",
    role="camera.movement",
    lexical_units={
        "pan": ["pan", "pans", "panning", "panned", "whip pan", "whip-pan"],
        "tilt": ["tilt", "tilts", "tilting", "tilted"],
        "dolly": ["dolly", "dollies", "dollying", "dollied", "dolly zoom",
                  "push in", "pushes in", "pull back", "pulls back", "pull out", "pulls out"],
        "truck": ["truck", "trucks", "trucking", "trucked"],
        "pedestal": ["pedestal", "pedestals", "pedestaling", "pedestalling"],
        "crane": ["crane", "cranes", "craning", "craned", "boom", "booms", "booming",
                  "jib", "jibs"],
        "roll": ["roll", "rolls", "rolling", "rolled", "dutch tilt"],
        "zoom": ["zoom", "zooms", "zooming", "zoomed", "crash zoom"],
        "tracking": ["track", "tracks", "tracking", "tracked", "tracking shot",
                     "follows", "orbit", "orbits", "orbiting", "arc shot"],
        "handheld": ["handheld", "hand-held", "steadicam", "gimbal"],
        "focus": ["rack focus", "racks focus", "pull focus", "pulls focus", "focus pull"],
    },
    frame_elements={
        "AGENT": (False, "camera.movement"),
        "DIRECTION": (False, "camera.movement"),
        "SUBJECT": (False, "subject.identity"),
        "SPEED": (False, "camera.movement"),
    },
    ambiguous_terms=[
        "pan", "pans", "panning", "panned",
        "dolly", "dollies",
        "truck", "trucks", "trucking", "trucked",
        "roll", "rolls", "rolling", "rolled",
        "crane", "cranes", "craning", "craned",
        "boom", "booms", "booming",
        "track", "tracks", "tracked", "follows",
        "zoom", "zooms", "zoomed",
        "orbit", "orbits", "orbiting",
    ],
    category_roles={"focus": "camera.focus"},
)

MOTION_FRAME = make_frame(
    name="Motion",
    role="action.movement",
    lexical_units={
        "locomotion": ["walk", "walks", "walking", "walked", "run", "runs", "running", "ran",
                       "sprint", "sprints", "sprinting", "jog", "jogs", "jogging",
                       "stroll", "strolls", "strolling", "march", "marches", "marching",
                       "stride", "strides", "striding", "wander", "wanders", "wandering",
                       "stumble", "stumbles", "stumbling", "race", "races", "racing",
                       "dash", "dashes", "dashing", "hurry", "hurries", "hurrying"],
        "aerial": ["fly", "flies", "flying", "flew", "soar", "soars", "soaring",
                   "glide", "glides", "gliding", "hover", "hovers", "hovering",
                   "swoop", "swoops", "swooping"],
        "aquatic": ["swim", "swims", "swimming", "dive", "dives", "diving",
                    "float", "floats", "floating", "paddle", "paddles", "paddling",
                    "surf", "surfs", "surfing"],
        "vertical": ["climb", "climbs", "climbing", "jump", "jumps", "jumping",
                     "leap", "leaps", "leaping", "fall", "falls", "falling",
                     "rise", "rises", "rising", "descend", "descends", "descending",
                     "ascend", "ascends", "ascending"],
        "rotational": ["spin", "spins", "spinning", "twirl", "twirls", "twirling",
                       "turn", "turns", "turning", "roll", "rolls", "rolling", "rolled",
                       "tumble", "tumbles", "tumbling"],
        "translational": ["move", "moves", "moving", "drift", "drifts", "drifting",
                          "slide", "slides", "sliding", "crawl", "crawls", "crawling",
                          "ride", "rides", "riding", "drive", "drives", "driving",
                          "dance", "dances", "dancing", "chase", "chases", "chasing",
                          "crane", "cranes", "craning", "truck", "trucks", "trucking"],
        "posture": ["sit", "sits", "sitting", "stand", "stands", "standing",
                    "kneel", "kneels", "kneeling", "lean", "leans", "leaning",
                    "crouch", "crouches", "crouching", "lie", "lies", "lying"],
    },
    frame_elements={
        "THEME": (True, "subject.identity"),
        "PATH": (False, "environment.location"),
        "SOURCE": (False, "environment.location"),
        "GOAL": (False, "environment.location"),
        "AREA": (False, "environment.location"),
        "MANNER": (False, "action.movement"),
    },
    category_roles={"posture": "action.state"},
)

LIGHTING_FRAME = make_frame(
    name="Lighting",
    role="lighting.quality",
    lexical_units={
        "illumination": ["lit", "light", "lights", "lighting", "illuminate", "illuminates",
                         "illuminated", "illuminating", "backlit", "sidelit", "bathed",
                         "bathes", "bathing"],
        "emission": ["glow", "glows", "glowing", "shine", "shines", "shining",
                     "flicker", "flickers", "flickering", "gleam", "gleams", "gleaming",
                     "shimmer", "shimmers", "shimmering"],
        "shadow": ["cast", "casts", "casting", "silhouetted", "shadowed"],
    },
    frame_elements={
        "SCENE": (False, "environment.location"),
        "SOURCE": (False, "lighting.source"),
        "QUALITY": (False, "lighting.quality"),
    },
)

DEFAULT_FRAMES: tuple[Frame, ...] = (CINEMATOGRAPHY_FRAME, MOTION_FRAME, LIGHTING_FRAME)
