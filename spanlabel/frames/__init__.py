"""Frame-semantic disambiguation of motion vs. camera-operation verbs."""

from .disambiguator import CameraContext, FrameDisambiguator, FrameMatch, build_camera_context
from .lexicon import (
    CINEMATOGRAPHY_FRAME,
    DEFAULT_FRAMES,
    DIRECTIONS,
    LIGHTING_FRAME,
    MOTION_FRAME,
    Frame,
    FrameElement,
    make_frame,
)
from .matcher import FrameInstance, FrameMatcher, tokenize

__all__ = [
    "CINEMATOGRAPHY_FRAME",
    "DEFAULT_FRAMES",
    "DIRECTIONS",
    "LIGHTING_FRAME",
    "MOTION_FRAME",
    "CameraContext",
    "Frame",
    "FrameDisambiguator",
    "FrameElement",
    "FrameInstance",
    "FrameMatch",
    "FrameMatcher",
    "build_camera_context",
    "make_frame",
    "tokenize",
]
