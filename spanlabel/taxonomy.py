"""Role taxonomy for video-concept spans.

Roles are dotted paths (``camera.movement``); the leading segment is the
category used for coverage scoring and fragmentation checks.  Bare parent
ids (``camera``) are valid too.
"""

from __future__ import annotations

from dataclasses import dataclass, field

TAXONOMY_VERSION = "3.0.0"


@dataclass(frozen=True)
class Category:
    id: str
    label: str
    description: str
    attributes: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

CATEGORIES: tuple[Category, ...] = (
    Category(
        "shot", "Shot Type", "Framing and vantage of the camera",
        {"type": "Wide shot, close-up, bird's eye, dutch angle"},
    ),
    Category(
        "subject", "Subject & Character", "The focal point of the shot",
        {
            "identity": "Core identity: a cowboy, an alien",
            "appearance": "Physical traits: weathered face, athletic build",
            "wardrobe": "Clothing: leather jacket, space suit",
            "emotion": "Emotional state: stoic expression, joyful demeanor",
        },
    ),
    Category(
        "action", "Action & Motion", "What the subject is doing (one continuous action)",
        {
            "movement": "Verb phrase: running, floating, leaning",
            "state": "Static pose: standing, sitting, kneeling",
            "gesture": "Micro-actions: raising hand, smiling softly",
        },
    ),
    Category(
        "environment", "Environment", "Where the scene takes place",
        {
            "location": "Physical location: diner, Mars, forest",
            "weather": "Weather: rainy, foggy, sunny",
            "context": "Context: crowded, empty, abandoned",
        },
    ),
    Category(
        "lighting", "Lighting", "Illumination and atmosphere",
        {
            "source": "Light source: neon sign, sun, candles",
            "quality": "Light quality: soft, hard, diffused",
            "timeOfDay": "Time of day: golden hour, night, dawn",
            "colorTemp": "Color temperature: 5500K, warm, cool",
        },
    ),
    Category(
        "camera", "Camera", "Cinematography and framing",
        {
            "movement": "Camera movement: dolly, pan, static, crane",
            "lens": "Lens: 35mm, anamorphic, wide angle",
            "angle": "Camera angle: low angle, overhead, eye level",
            "focus": "Focus/aperture: f/2.8, shallow depth of field",
        },
    ),
    Category(
        "style", "Style & Aesthetic", "Visual treatment and medium",
        {
            "aesthetic": "Aesthetic: cyberpunk, noir, vintage",
            "filmStock": "Film medium: Kodak Portra, 35mm film",
            "colorGrade": "Color grading: warm tones, desaturated",
        },
    ),
    Category(
        "technical", "Technical Specs", "Video technical parameters",
        {
            "aspectRatio": "Aspect ratio: 16:9, 2.39:1",
            "frameRate": "Frame rate: 24fps, 60fps",
            "resolution": "Resolution: 4K, 1080p",
            "duration": "Duration: 4-8s, 10 seconds",
        },
    ),
    Category(
        "audio", "Audio", "Sound and music elements",
        {
            "score": "Music: orchestral score",
            "soundEffect": "Sound effects: footsteps, traffic",
            "ambient": "Ambience: forest sounds, city hum",
        },
    ),
)

PARENT_IDS: frozenset[str] = frozenset(c.id for c in CATEGORIES)

VALID_CATEGORIES: frozenset[str] = frozenset(
    [c.id for c in CATEGORIES]
    + [f"{c.id}.{attr}" for c in CATEGORIES for attr in c.attributes]
)

# Categories whose spans are short technical terms, exempt from word limits
# and counted as high signal by the fast path.
HIGH_SIGNAL_PREFIXES: tuple[str, ...] = (
    "technical", "camera", "shot", "style", "audio", "lighting",
)

# Old flat ids still emitted by some prompts and stored results.
LEGACY_ID_MAP: dict[str, str] = {
    "identity": "subject.identity",
    "appearance": "subject.appearance",
    "wardrobe": "subject.wardrobe",
    "action": "action.movement",
    "emotion": "subject.emotion",
    "subject.action": "action.movement",
    "location": "environment.location",
    "weather": "environment.weather",
    "context": "environment.context",
    "lighting_source": "lighting.source",
    "lightingSource": "lighting.source",
    "lighting_quality": "lighting.quality",
    "lightingQuality": "lighting.quality",
    "time_of_day": "lighting.timeOfDay",
    "timeOfDay": "lighting.timeOfDay",
    "timeofday": "lighting.timeOfDay",
    "colorTemp": "lighting.colorTemp",
    "color_temp": "lighting.colorTemp",
    "framing": "shot.type",
    "camera.framing": "shot.type",
    "shot": "shot.type",
    "camera_move": "camera.movement",
    "cameraMove": "camera.movement",
    "movement": "camera.movement",
    "lens": "camera.lens",
    "angle": "camera.angle",
    "focus": "camera.focus",
    "aperture": "camera.focus",
    "depth_of_field": "camera.focus",
    "aesthetic": "style.aesthetic",
    "film_stock": "style.filmStock",
    "filmStock": "style.filmStock",
    "colorGrade": "style.colorGrade",
    "color_grade": "style.colorGrade",
    "aspect_ratio": "technical.aspectRatio",
    "aspectRatio": "technical.aspectRatio",
    "frame_rate": "technical.frameRate",
    "frameRate": "technical.frameRate",
    "fps": "technical.frameRate",
    "resolution": "technical.resolution",
    "specs": "technical.resolution",
    "duration": "technical.duration",
    "score": "audio.score",
    "sound_effect": "audio.soundEffect",
    "soundEffect": "audio.soundEffect",
    "sfx": "audio.soundEffect",
    "ambient": "audio.ambient",
    "ambience": "audio.ambient",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_valid_category(role: str | None) -> bool:
    return bool(role) and role in VALID_CATEGORIES


def resolve_category(role: str | None) -> str:
    """Map a legacy id to its namespaced form; other ids pass through."""
    if not role:
        return role or ""
    return LEGACY_ID_MAP.get(role, role)


def category_of(role: str) -> str:
    """Return the leading segment of a dotted role."""
    return (role or "").split(".", 1)[0]


def parse_category_id(role: str | None) -> tuple[str, str | None] | None:
    """Split ``subject.wardrobe`` into ``("subject", "wardrobe")``."""
    if not role or not isinstance(role, str):
        return None
    parent, _, attribute = role.partition(".")
    return parent, (attribute or None)


def is_high_signal(role: str) -> bool:
    return category_of(role) in HIGH_SIGNAL_PREFIXES


def describe_taxonomy() -> str:
    """Render the taxonomy as a bullet list for prompts."""
    lines: list[str] = []
    for cat in CATEGORIES:
        lines.append(f"- {cat.id}: {cat.description}")
        for attr, hint in cat.attributes.items():
            lines.append(f"  - {cat.id}.{attr}: {hint}")
    return "\n".join(lines)
