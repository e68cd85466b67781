"""Closed vocabulary and regex patterns for the fast path.

Every term maps to exactly one taxonomy role.  Matching is case-insensitive,
whole-word and longest-first, so "golden hour" wins over "golden".
"""

from __future__ import annotations

import re
from dataclasses import dataclass

VOCABULARY: dict[str, tuple[str, ...]] = {
    "shot.type": (
        "wide shot", "extreme wide shot", "establishing shot", "medium shot",
        "medium close-up", "close-up", "closeup", "extreme close-up", "full shot",
        "long shot", "over-the-shoulder shot", "two-shot", "pov shot",
        "point of view shot", "bird's eye view", "bird's-eye view", "aerial shot",
        "insert shot", "cowboy shot", "wide establishing shot",
    ),
    "camera.movement": (
        "tracking shot", "dolly zoom", "whip pan", "crane shot", "drone shot",
        "handheld", "hand-held", "steadicam", "gimbal shot", "locked-off",
        "static shot", "slow push-in", "push-in", "push in", "pull back",
        "tilt up", "tilt down", "tilts up", "tilts down",
        "pan", "pans", "panning", "dolly", "dollies", "truck", "trucks",
        "crane", "cranes", "zoom", "zooms", "zooming", "roll", "rolls",
        "orbit", "orbits", "orbiting", "boom", "booms",
    ),
    "camera.angle": (
        "low angle", "low-angle", "high angle", "high-angle", "eye level",
        "eye-level", "dutch angle", "canted angle", "overhead angle",
        "worm's-eye view", "worm's eye view", "top-down",
    ),
    "camera.lens": (
        "wide-angle lens", "wide angle lens", "telephoto lens", "anamorphic lens",
        "fisheye lens", "macro lens", "prime lens", "anamorphic", "telephoto",
        "fisheye",
    ),
    "camera.focus": (
        "shallow depth of field", "deep depth of field", "deep focus",
        "rack focus", "soft focus", "selective focus", "bokeh", "tilt-shift",
    ),
    "lighting.timeOfDay": (
        "golden hour", "blue hour", "magic hour", "dawn", "dusk", "sunrise",
        "sunset", "twilight", "midnight", "nighttime", "night", "midday",
        "high noon", "early morning", "morning", "afternoon", "evening", "daybreak",
    ),
    "lighting.quality": (
        "soft light", "soft lighting", "hard light", "harsh light", "diffused light",
        "natural light", "low-key lighting", "high-key lighting", "chiaroscuro",
        "rim light", "rim lighting", "volumetric light", "volumetric lighting",
        "dramatic lighting", "moody lighting", "backlighting", "backlit",
        "long shadows", "dappled light", "dappled sunlight", "god rays",
    ),
    "lighting.source": (
        "neon signs", "neon sign", "neon lights", "candlelight", "moonlight",
        "sunlight", "firelight", "lantern", "lanterns", "streetlights",
        "streetlamps", "headlights", "window light", "fluorescent lights",
        "practical lights",
    ),
    "lighting.colorTemp": (
        "tungsten", "daylight balanced", "warm light", "cool light",
    ),
    "style.aesthetic": (
        "cinematic", "film noir", "noir", "cyberpunk", "vaporwave", "minimalist",
        "surreal", "dreamlike", "documentary style", "vintage", "retro",
        "photorealistic", "hyperrealistic", "anime", "steampunk", "gothic",
        "neo-noir", "art deco",
    ),
    "style.filmStock": (
        "kodak portra", "kodak vision3", "ektachrome", "kodachrome", "fujifilm",
        "cinestill 800t", "35mm film", "16mm film", "super 8", "70mm film",
        "65mm film",
    ),
    "style.colorGrade": (
        "teal and orange", "desaturated", "high contrast", "muted colors",
        "vibrant colors", "pastel palette", "monochrome", "black and white",
        "sepia", "bleach bypass", "warm tones", "cool tones", "warm color palette",
    ),
    "technical.frameRate": ("slow motion", "slow-motion"),
    "audio.score": (
        "orchestral score", "ambient music", "piano score", "soundtrack",
        "synth score", "string quartet",
    ),
    "audio.soundEffect": (
        "footsteps", "thunderclap", "gunshots", "explosion", "door creak",
        "glass shattering",
    ),
    "audio.ambient": (
        "birdsong", "city sounds", "rain sounds", "wind howling", "crowd murmur",
        "ocean waves crashing", "distant traffic",
    ),
    "environment.weather": (
        "heavy rain", "light rain", "rain", "rainy", "snow", "snowy", "snowfall",
        "fog", "foggy", "mist", "misty", "thunderstorm", "storm", "overcast",
        "sunny", "drizzle", "blizzard", "sandstorm",
    ),
    "environment.location": (
        "forest", "beach", "desert", "city street", "alley", "alleyway", "rooftop",
        "diner", "kitchen", "warehouse", "cathedral", "subway station", "mountain",
        "mountains", "ocean", "lake", "field", "meadow", "living room", "bedroom",
        "office", "spaceship", "jungle", "skyline", "park", "highway", "bridge",
        "market", "village", "castle", "library", "street", "city", "harbor",
        "train station", "nightclub", "bar", "cafe", "café",
    ),
    "environment.context": (
        "crowded", "empty", "abandoned", "bustling", "deserted", "quiet", "busy",
        "overgrown", "ruined",
    ),
    "subject.identity": (
        "woman", "man", "young woman", "young man", "old man", "old woman",
        "elderly woman", "elderly man", "girl", "boy", "child", "soldier",
        "astronaut", "detective", "chef", "dancer", "cowboy", "robot", "dog", "cat",
        "horse", "bird", "dragon", "knight", "samurai", "musician", "skateboarder",
        "surfer", "couple", "golden retriever", "fox", "wolf",
    ),
    "subject.wardrobe": (
        "leather jacket", "trench coat", "red dress", "business suit", "hoodie",
        "uniform", "armor", "space suit", "spacesuit", "kimono", "sundress",
        "raincoat", "wedding dress", "cowboy hat",
    ),
    "subject.emotion": (
        "joyful", "melancholic", "anxious", "determined", "stoic", "tearful",
        "serene", "angry", "frightened", "pensive", "contemplative",
    ),
    "subject.appearance": (
        "weathered face", "long hair", "freckles", "tattoos", "wrinkled",
        "muscular", "bearded", "gray hair", "grey hair", "silver hair", "red hair",
    ),
    "action.gesture": (
        "waving", "nodding", "pointing", "shrugging", "smiling", "laughing",
        "winking", "clapping", "raising a hand",
    ),
}


@dataclass(frozen=True)
class PatternRule:
    role: str
    pattern: re.Pattern[str]
    confidence: float = 0.95


PATTERNS: tuple[PatternRule, ...] = (
    PatternRule("style.filmStock", re.compile(r"\b(?:8|16|35|65|70)\s?mm film\b", re.I), 1.0),
    PatternRule("technical.aspectRatio", re.compile(r"\b\d{1,2}(?:\.\d{1,2})?:\d{1,2}\b")),
    PatternRule("technical.frameRate", re.compile(r"\b\d{2,3}\s?(?:fps|frames per second)\b", re.I)),
    PatternRule("technical.resolution", re.compile(r"\b(?:[248]k|1080p|720p|2160p|4320p|uhd|full hd)\b", re.I)),
    PatternRule(
        "technical.duration",
        re.compile(r"\b\d+(?:\s?-\s?\d+)?\s?(?:s|sec|secs|seconds)\b", re.I),
    ),
    PatternRule("camera.lens", re.compile(r"\b\d{2,3}\s?mm(?:\s+(?:anamorphic\s+)?lens)?\b", re.I)),
    PatternRule("camera.focus", re.compile(r"\bf/\d+(?:\.\d+)?\b", re.I)),
    PatternRule("lighting.colorTemp", re.compile(r"\b\d{4,5}\s?K\b")),
)


def build_term_index(vocabulary: dict[str, tuple[str, ...]] = VOCABULARY) -> tuple[re.Pattern[str], dict[str, str]]:
    """Compile one longest-first alternation over every term."""
    term_to_role: dict[str, str] = {}
    for role, terms in vocabulary.items():
        for term in terms:
            term_to_role.setdefault(term.lower(), role)
    ordered = sorted(term_to_role, key=len, reverse=True)
    pattern = re.compile(
        r"(?<![\w-])(?:" + "|".join(re.escape(t) for t in ordered) + r")(?![\w-])",
        re.IGNORECASE,
    )
    return pattern, term_to_role


def vocab_stats(vocabulary: dict[str, tuple[str, ...]] = VOCABULARY) -> dict[str, int]:
    return {
        "roles": len(vocabulary),
        "terms": sum(len(t) for t in vocabulary.values()),
        "patterns": len(PATTERNS),
    }
