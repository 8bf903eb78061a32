"""User-prompt templates for each generation task.

Every template is a pure function of its parameters. Optional parameters
contribute a line only when they are supplied, so a rendered prompt never
carries empty placeholders. The character, plot and setting templates embed
the JSON shape the response extractor expects back.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

DEFAULT_GENRE = "fantasy"
DEFAULT_AUDIENCE = "young adult"

EXPANSION_FOCUS_AREAS = ("background", "relationships", "development", "details")
EXPANSION_ENTITY_TYPES = ("character", "setting", "plot")

CHARACTER_OUTPUT_SCHEMA = """{
  "name": "Character Name",
  "shortDescription": "One sentence description",
  "background": "Character backstory (3-5 sentences)",
  "physicalTraits": ["trait1", "trait2", "trait3"],
  "personalityTraits": ["trait1", "trait2", "trait3"],
  "goals": ["primary goal", "secondary goal"],
  "fears": ["primary fear", "secondary fear"],
  "skills": ["skill1", "skill2"],
  "voice": "Brief description of how this character speaks",
  "role": "Role in the story",
  "relationships": [
    {
      "with": "Related character name or 'potential'",
      "type": "Relationship type (friend, enemy, mentor, etc.)",
      "dynamics": "Brief description of relationship dynamics"
    }
  ],
  "arc": "Potential character arc or development path"
}"""

PLOT_OUTPUT_SCHEMA = """{
  "title": "Plot title",
  "summary": "Overview of the plot (3-5 sentences)",
  "conflict": "The central conflict driving the story",
  "plotPoints": ["inciting incident", "rising action", "climax", "resolution"],
  "themes": ["theme1", "theme2"],
  "subplots": [
    {
      "title": "Subplot title",
      "description": "How the subplot supports the main story"
    }
  ],
  "resolution": "How the central conflict is resolved"
}"""

SETTING_OUTPUT_SCHEMA = """{
  "name": "Setting name",
  "description": "Overview of the place (3-5 sentences)",
  "atmosphere": "The mood a visitor feels here",
  "keyFeatures": ["feature1", "feature2", "feature3"],
  "sensoryDetails": ["sight", "sound", "smell"],
  "landmarks": [
    {
      "name": "Landmark name",
      "description": "Why the landmark matters to the story"
    }
  ],
  "history": "Brief history of the place"
}"""

FILTER_GUIDANCE = {
    "strict": "Keep the content gentle: no violence, no romance and nothing frightening.",
    "standard": "Keep conflict and peril age-appropriate and avoid graphic detail.",
    "relaxed": "Mature themes are acceptable when handled thoughtfully, but avoid gratuitous content.",
}

PLOT_LENGTH_GUIDANCE = {
    "short": "Keep the plot compact enough for a short story.",
    "medium": "Give the plot enough room for a novella with a few subplots.",
    "long": "Develop the plot at novel length with several intertwined subplots.",
}

EDITORIAL_FOCUS_GUIDANCE = {
    "pacing": "Pacing: point out passages that drag or rush.",
    "character": "Character: note where motivations or voices feel inconsistent.",
    "plot": "Plot: flag gaps in logic and unresolved threads.",
    "dialogue": "Dialogue: comment on how natural and distinctive the dialogue sounds.",
    "description": "Description: suggest where imagery could be sharper or lighter.",
}

EXPANSION_FOCUS_GUIDANCE = {
    "character": {
        "background": (
            "Provide a detailed backstory that explains how the character became who they are today. "
            "Include formative experiences, key relationships, and pivotal moments."
        ),
        "relationships": (
            "Develop the character's relationships with others. Create connections that are complex, "
            "meaningful, and have potential for conflict or growth."
        ),
        "development": (
            "Outline a potential character arc or development path. How might this character change over "
            "the course of the story? What events might trigger this growth?"
        ),
        "details": (
            "Add rich, specific details about the character's personality, habits, preferences, mannerisms, "
            "and quirks that make them unique and memorable."
        ),
    },
    "setting": {
        "background": (
            "Describe the history of this place: how it came to be and the events that left their mark on it."
        ),
        "relationships": (
            "Describe how this place connects to the characters and to the other locations of the story."
        ),
        "development": (
            "Describe how this place might change over the course of the story and which events could transform it."
        ),
        "details": (
            "Add rich sensory details about the sights, sounds, smells, and textures that make this place memorable."
        ),
    },
    "plot": {
        "background": "Explain the events that happened before the story begins and set this plot in motion.",
        "relationships": "Describe how this plot ties the characters to one another and to the other storylines.",
        "development": "Outline how this plot escalates through its turning points towards the climax.",
        "details": "Add specific scenes and complications that make this plot vivid and surprising.",
    },
}

EXPANSION_FIELD_HINTS = {
    "character": {
        "background": 'Include a "background" string and a "backstory" object with childhood, adolescence, adulthood and keyEvents.',
        "relationships": 'Include a "relationships" array of objects with "with", "type", "dynamics" and an optional "strength" from 1 to 10.',
        "development": 'Include an "arc" string and, if useful, "developmentStages" and "growthAreas".',
        "details": 'Include "physicalTraits", "personalityTraits" and "voice", plus optional "hobbies", "quirks" and "mannerisms".',
    },
    "setting": {
        "background": 'Include a "history" string.',
        "relationships": 'Include a "connections" array of objects with "with", "type" and "description".',
        "development": 'Include a "changes" string describing how the place evolves.',
        "details": 'Include "sensoryDetails", "keyFeatures" and "atmosphere".',
    },
    "plot": {
        "background": 'Include a "backstory" string.',
        "relationships": 'Include a "connections" array of objects with "with", "type" and "description".',
        "development": 'Include a "turningPoints" array and an "arc" string.',
        "details": 'Include a "scenes" array of short scene descriptions.',
    },
}


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return bool(value)
    return True


def _join_list(values: Any) -> str:
    if not isinstance(values, (list, tuple, set)):
        values = [values]
    return ", ".join(str(value) for value in values)


def _compose(lines: Iterable[Optional[str]]) -> str:
    """Join prompt lines, dropping conditional lines that were not triggered.

    Blank strings are kept as paragraph breaks, ``None`` marks an omitted
    clause. Runs of blank lines are collapsed.
    """

    output: List[str] = []
    for line in lines:
        if line is None:
            continue
        if line == "" and (not output or output[-1] == ""):
            continue
        output.append(line)
    while output and output[-1] == "":
        output.pop()
    return "\n".join(output)


def _when(value: Any, text: str) -> Optional[str]:
    return text if _present(value) else None


def _audience_frame(params: Mapping[str, Any]) -> tuple[str, str]:
    genre = params.get("genre") if _present(params.get("genre")) else DEFAULT_GENRE
    audience = params.get("audience") if _present(params.get("audience")) else DEFAULT_AUDIENCE
    return str(genre), str(audience)


def _guidance_lines(params: Mapping[str, Any]) -> List[Optional[str]]:
    """Content-filter and response-format lines shared by every task."""

    lines: List[Optional[str]] = []
    filter_level = params.get("filter_level")
    if _present(filter_level):
        lines.append(FILTER_GUIDANCE.get(str(filter_level)))

    format_options = params.get("format_options") or {}
    as_json = format_options.get("as_json")
    if as_json is True:
        lines.append("Respond with valid JSON only, without any commentary before or after it.")
    elif as_json is False:
        lines.append("Respond in plain prose rather than JSON.")

    markdown_level = format_options.get("markdown_level")
    if markdown_level is not None:
        if int(markdown_level) == 0:
            lines.append("Do not use markdown headings.")
        else:
            lines.append(f"Organise the response with level-{int(markdown_level)} markdown headings.")

    include_reasoning = format_options.get("include_reasoning")
    if include_reasoning is True:
        lines.append("After the main response, briefly explain the creative choices you made.")
    elif include_reasoning is False:
        lines.append("Do not explain your reasoning.")
    return lines


def render_character(params: Mapping[str, Any]) -> str:
    genre, audience = _audience_frame(params)
    name = params.get("name")
    key_traits = params.get("key_traits") or []
    related = params.get("related_characters") or []

    return _compose(
        [
            f"Create a character for a {genre} story appropriate for {audience} readers.",
            "",
            f"The character's name is {name}." if _present(name) else "Please provide a suitable name for the character.",
            _when(params.get("role"), f"The character should serve as a {params.get('role')} in the narrative."),
            _when(
                params.get("age_range"),
                f"The character should be in the following age range: {params.get('age_range')}.",
            ),
            _when(key_traits, f"The character should have the following key traits: {_join_list(key_traits)}."),
            _when(
                params.get("setting_description"),
                f"This character should fit naturally in the following setting: {params.get('setting_description')}",
            ),
            _when(
                related,
                "This character should have meaningful connections to the following characters: "
                f"{_join_list(related)}.",
            ),
            _when(
                params.get("narrative_importance"),
                f"This character has {str(params.get('narrative_importance')).lower()} importance to the overall narrative.",
            ),
            *_guidance_lines(params),
            "",
            "This character should:",
            "1. Be well-rounded with strengths and flaws",
            "2. Have clear motivations that drive their actions",
            "3. Have a distinctive voice and personality",
            "4. Be relatable and believable",
            "5. Have potential for growth or change throughout the story",
            "",
            "Return the character in the following JSON format:",
            CHARACTER_OUTPUT_SCHEMA,
            "",
            f"Make sure all content is age-appropriate for {audience} readers and fits well with the {genre} genre.",
        ]
    )


def render_plot(params: Mapping[str, Any]) -> str:
    genre, audience = _audience_frame(params)
    plot_points = params.get("plot_points") or []
    characters = params.get("characters") or []
    desired_length = params.get("desired_length")

    return _compose(
        [
            f"Create a plot for a {genre} story appropriate for {audience} readers.",
            "",
            _when(plot_points, f"Incorporate the following plot points: {_join_list(plot_points)}."),
            _when(characters, f"The plot should involve these characters: {_join_list(characters)}."),
            _when(params.get("setting"), f"The story takes place in the following setting: {params.get('setting')}"),
            _when(params.get("conflict_type"), f"The central conflict should be {params.get('conflict_type')}."),
            PLOT_LENGTH_GUIDANCE.get(str(desired_length)) if _present(desired_length) else None,
            *_guidance_lines(params),
            "",
            "The plot should:",
            "1. Open with a clear hook and an inciting incident",
            "2. Escalate the stakes through rising action",
            "3. Reach a satisfying climax that tests the characters",
            "4. Resolve the central conflict in a way that fits the themes",
            "",
            "Return the plot in the following JSON format:",
            PLOT_OUTPUT_SCHEMA,
            "",
            f"Make sure all content is age-appropriate for {audience} readers and fits well with the {genre} genre.",
        ]
    )


def render_setting(params: Mapping[str, Any]) -> str:
    genre, audience = _audience_frame(params)
    key_features = params.get("key_features") or []

    return _compose(
        [
            f"Create a setting for a {genre} story appropriate for {audience} readers.",
            "",
            _when(params.get("location_type"), f"The setting should be a {params.get('location_type')}."),
            _when(params.get("time_period"), f"The setting exists in the following time period: {params.get('time_period')}."),
            _when(params.get("mood"), f"The setting should evoke a {params.get('mood')} mood."),
            _when(key_features, f"The setting should include the following key features: {_join_list(key_features)}."),
            *_guidance_lines(params),
            "",
            "The setting should:",
            "1. Feel vivid and engage several senses",
            "2. Offer opportunities for conflict and discovery",
            "3. Have a history that shapes its present",
            "",
            "Return the setting in the following JSON format:",
            SETTING_OUTPUT_SCHEMA,
            "",
            f"Make sure all content is age-appropriate for {audience} readers and fits well with the {genre} genre.",
        ]
    )


def render_chapter(params: Mapping[str, Any]) -> str:
    genre, audience = _audience_frame(params)
    characters_present = params.get("characters_present") or []
    goals = params.get("goals") or []

    return _compose(
        [
            f"Write a chapter for a {genre} story appropriate for {audience} readers.",
            "",
            _when(params.get("title"), f"The chapter is titled \"{params.get('title')}\"."),
            _when(characters_present, f"The following characters appear in this chapter: {_join_list(characters_present)}."),
            _when(params.get("setting"), f"The chapter takes place in the following setting: {params.get('setting')}"),
            _when(
                params.get("previous_chapter_summary"),
                f"Summary of the previous chapter: {params.get('previous_chapter_summary')}",
            ),
            _when(goals, f"By the end of the chapter the story should achieve the following: {_join_list(goals)}."),
            _when(params.get("word_count"), f"Aim for approximately {params.get('word_count')} words."),
            *_guidance_lines(params),
            "",
            "Write the chapter as continuous prose with natural dialogue, and end on a moment that pulls the reader onward.",
            "",
            f"Make sure all content is age-appropriate for {audience} readers and fits well with the {genre} genre.",
        ]
    )


def render_editorial(params: Mapping[str, Any]) -> str:
    genre, audience = _audience_frame(params)
    focus_areas = params.get("focus_areas") or []

    lines: List[Optional[str]] = [
        f"Provide editorial feedback on the following content from a {genre} story written for {audience} readers.",
        "",
    ]
    if focus_areas:
        lines.append(f"Focus your feedback on: {_join_list(focus_areas)}.")
        lines.extend(EDITORIAL_FOCUS_GUIDANCE.get(str(area)) for area in focus_areas)
    lines.extend(_guidance_lines(params))
    lines.extend(
        [
            "",
            "Start with what works well, then give specific, encouraging suggestions the writer can act on.",
            "",
            "Content:",
            '"""',
            str(params.get("content") or "").strip(),
            '"""',
        ]
    )
    return _compose(lines)


TEMPLATES: Dict[str, Callable[[Mapping[str, Any]], str]] = {
    "character": render_character,
    "plot": render_plot,
    "setting": render_setting,
    "chapter": render_chapter,
    "editorial": render_editorial,
}


def render(task: str, params: Mapping[str, Any]) -> str:
    """Render the user prompt for ``task``. Raises ``KeyError`` for unknown tasks."""

    return TEMPLATES[task](params)


def render_expansion(entity_type: str, focus: str, params: Mapping[str, Any]) -> str:
    """Render the follow-up prompt that deepens one facet of an existing entity."""

    genre, audience = _audience_frame(params)
    entity = params.get("entity") or {}
    name = entity.get("name") or f"the {entity_type}"
    description = entity.get("description") or entity.get("short_description")
    traits = entity.get("traits") or []
    related = params.get("related_characters") or []

    return _compose(
        [
            f"Expand the {entity_type} \"{name}\" for a {genre} story appropriate for {audience} readers.",
            "",
            f"Current information about the {entity_type}:",
            _when(description, str(description)),
            _when(entity.get("background"), f"Background: {entity.get('background')}"),
            _when(traits, f"Known traits: {_join_list(traits)}"),
            "",
            _when(
                params.get("setting_description"),
                f"This {entity_type} exists in the following setting: {params.get('setting_description')}",
            ),
            _when(related, f"This {entity_type} has relationships with: {_join_list(related)}"),
            "",
            f"Focus on developing the {entity_type}'s {focus}.",
            "",
            EXPANSION_FOCUS_GUIDANCE[entity_type][focus],
            "",
            f"Return the expanded {entity_type} details in JSON format, focusing on the {focus} aspect.",
            EXPANSION_FIELD_HINTS[entity_type][focus],
            "",
            f"Make sure all content is age-appropriate for {audience} readers and fits well with the {genre} genre.",
        ]
    )
