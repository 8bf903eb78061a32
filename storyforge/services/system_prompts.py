"""Central configuration for the system prompts sent with each generation task."""

from __future__ import annotations

_PLATFORM_PREAMBLE = (
    "You are a helpful AI writing assistant for StoryForge, a platform for young writers. "
)

SYSTEM_PROMPTS = {
    "character": _PLATFORM_PREAMBLE
    + "Your task is to help create engaging and well-developed characters.",
    "plot": _PLATFORM_PREAMBLE
    + "Your task is to help create compelling plot elements that drive the narrative forward.",
    "setting": _PLATFORM_PREAMBLE
    + "Your task is to help create rich, immersive settings that enhance the story world.",
    "chapter": _PLATFORM_PREAMBLE
    + "Your task is to help write engaging chapters that advance the story.",
    "editorial": _PLATFORM_PREAMBLE
    + "Your task is to provide constructive editorial feedback to improve the story.",
}


def get_system_prompt(task: str) -> str:
    return SYSTEM_PROMPTS[task]
