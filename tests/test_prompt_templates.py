import itertools
import re
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from storyforge.services import prompt_templates
from storyforge.services.prompt_templates import render, render_expansion

_PLACEHOLDER = re.compile(r"\{[a-z_]+\}|\bNone\b")

OPTIONAL_FIELDS = {
    "character": {
        "role": ("Protagonist", "serve as a Protagonist"),
        "age_range": ("12-14", "age range: 12-14"),
        "key_traits": (["brave", "curious"], "key traits: brave, curious"),
        "setting_description": ("A floating city", "fit naturally in the following setting"),
        "related_characters": (["Mira"], "meaningful connections to the following characters: Mira"),
        "narrative_importance": ("High", "has high importance"),
    },
    "plot": {
        "plot_points": (["The bridge falls"], "Incorporate the following plot points"),
        "characters": (["Elara"], "involve these characters: Elara"),
        "setting": ("A drowned library", "takes place in the following setting"),
        "conflict_type": ("person vs. nature", "central conflict should be person vs. nature"),
        "desired_length": ("short", "compact enough for a short story"),
    },
    "setting": {
        "location_type": ("harbour town", "should be a harbour town"),
        "time_period": ("late bronze age", "time period: late bronze age"),
        "mood": ("eerie", "evoke a eerie mood"),
        "key_features": (["lighthouse"], "key features: lighthouse"),
    },
    "chapter": {
        "title": ("The Bridge", 'titled "The Bridge"'),
        "characters_present": (["Elara", "Tomas"], "appear in this chapter: Elara, Tomas"),
        "setting": ("The old mill", "takes place in the following setting"),
        "previous_chapter_summary": ("Elara fled the city.", "Summary of the previous chapter"),
        "goals": (["reveal the map"], "achieve the following: reveal the map"),
        "word_count": (1200, "approximately 1200 words"),
    },
    "editorial": {
        "focus_areas": (["pacing", "dialogue"], "Focus your feedback on: pacing, dialogue."),
    },
}

REQUIRED_PARAMS = {"editorial": {"content": "Elara ran. She ran fast."}}


def _permutations(task):
    fields = list(OPTIONAL_FIELDS[task])
    for mask in itertools.product([False, True], repeat=len(fields)):
        yield {name: present for name, present in zip(fields, mask)}


@pytest.mark.parametrize("task", sorted(OPTIONAL_FIELDS))
def test_conditional_lines_appear_only_for_supplied_parameters(task):
    for presence in _permutations(task):
        params = dict(REQUIRED_PARAMS.get(task, {}))
        for name, present in presence.items():
            if present:
                params[name] = OPTIONAL_FIELDS[task][name][0]

        prompt = render(task, params)

        assert not _PLACEHOLDER.search(prompt), prompt
        for name, present in presence.items():
            marker = OPTIONAL_FIELDS[task][name][1]
            assert (marker in prompt) is present, (task, name, present)


@pytest.mark.parametrize("task", ["character", "plot", "setting", "chapter", "editorial"])
def test_genre_and_audience_fall_back_to_defaults(task):
    prompt = render(task, dict(REQUIRED_PARAMS.get(task, {})))
    assert "fantasy" in prompt
    assert "young adult" in prompt


def test_character_prompt_embeds_output_schema_and_name_fallback():
    prompt = render("character", {"genre": "mystery", "audience": "children"})

    assert prompt_templates.CHARACTER_OUTPUT_SCHEMA in prompt
    assert "Please provide a suitable name for the character." in prompt
    assert "for a mystery story appropriate for children readers" in prompt

    named = render("character", {"name": "Elara"})
    assert "The character's name is Elara." in named
    assert "Please provide a suitable name" not in named


def test_plot_and_setting_prompts_embed_their_schemas():
    assert prompt_templates.PLOT_OUTPUT_SCHEMA in render("plot", {})
    assert prompt_templates.SETTING_OUTPUT_SCHEMA in render("setting", {})
    assert "JSON format" not in render("chapter", {})


def test_filter_and_format_lines():
    prompt = render(
        "setting",
        {
            "filter_level": "strict",
            "format_options": {"as_json": True, "markdown_level": 2, "include_reasoning": True},
        },
    )
    assert prompt_templates.FILTER_GUIDANCE["strict"] in prompt
    assert "Respond with valid JSON only" in prompt
    assert "level-2 markdown headings" in prompt
    assert "briefly explain the creative choices" in prompt

    plain = render("setting", {"format_options": {"markdown_level": 0, "as_json": False}})
    assert "Do not use markdown headings." in plain
    assert "Respond in plain prose rather than JSON." in plain
    assert "creative choices" not in plain


def test_editorial_prompt_quotes_content():
    prompt = render("editorial", {"content": "  The dragon slept.  ", "focus_areas": ["character"]})
    assert '"""\nThe dragon slept.\n"""' in prompt
    assert prompt_templates.EDITORIAL_FOCUS_GUIDANCE["character"] in prompt


def test_unknown_task_is_a_key_error():
    with pytest.raises(KeyError):
        render("poem", {})


@pytest.mark.parametrize(
    "entity_type,focus",
    list(itertools.product(prompt_templates.EXPANSION_ENTITY_TYPES, prompt_templates.EXPANSION_FOCUS_AREAS)),
)
def test_expansion_prompt_selects_focus_paragraph(entity_type, focus):
    prompt = render_expansion(entity_type, focus, {"entity": {"name": "Elara"}})

    assert prompt_templates.EXPANSION_FOCUS_GUIDANCE[entity_type][focus] in prompt
    assert prompt_templates.EXPANSION_FIELD_HINTS[entity_type][focus] in prompt
    for other in prompt_templates.EXPANSION_FOCUS_AREAS:
        if other != focus:
            assert prompt_templates.EXPANSION_FOCUS_GUIDANCE[entity_type][other] not in prompt
    assert not _PLACEHOLDER.search(prompt)


def test_expansion_prompt_includes_known_entity_details():
    prompt = render_expansion(
        "character",
        "relationships",
        {
            "entity": {"name": "Elara", "description": "A scout", "traits": ["brave"]},
            "related_characters": ["Tomas", "Mira"],
        },
    )
    assert 'Expand the character "Elara"' in prompt
    assert "A scout" in prompt
    assert "Known traits: brave" in prompt
    assert "relationships with: Tomas, Mira" in prompt
    assert "Background:" not in prompt


def test_scalar_list_values_render_as_single_items():
    expansion = render_expansion("character", "details", {"entity": {"name": "Elara", "traits": 5}})
    plot = render("plot", {"characters": "Elara"})

    assert "Known traits: 5" in expansion
    assert "involve these characters: Elara." in plot
