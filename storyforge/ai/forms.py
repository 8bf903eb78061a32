from wtforms import FloatField
from wtforms.validators import AnyOf, DataRequired, Length, NumberRange, Optional, ValidationError

from ..forms import JSONForm, MappingField, StringListField, TextField, WholeNumberField
from ..services.prompt_templates import (
    EDITORIAL_FOCUS_GUIDANCE,
    EXPANSION_ENTITY_TYPES,
    EXPANSION_FOCUS_AREAS,
    FILTER_GUIDANCE,
    PLOT_LENGTH_GUIDANCE,
)
from ..services.provider import IMAGE_SIZES

GENRES = (
    "fantasy",
    "science fiction",
    "mystery",
    "adventure",
    "historical fiction",
    "realistic fiction",
    "horror",
    "comedy",
    "drama",
    "fairy tale",
    "fable",
    "superhero",
)
AUDIENCES = ("children", "middle grade", "young adult", "adult")
FILTER_LEVELS = tuple(FILTER_GUIDANCE)
FOCUS_AREAS = tuple(EDITORIAL_FOCUS_GUIDANCE)


def _required(field_name: str) -> DataRequired:
    return DataRequired(message=f"Missing required field: {field_name}")


class _CallerForm(JSONForm):
    project_id = TextField("Project", validators=[_required("projectId")])
    user_id = TextField("User", validators=[_required("userId")])


class _TuningForm(_CallerForm):
    genre = TextField("Genre", validators=[Optional(), AnyOf(GENRES)])
    audience = TextField("Audience", validators=[Optional(), AnyOf(AUDIENCES)])
    filter_level = TextField("Content filter", validators=[Optional(), AnyOf(FILTER_LEVELS)])
    format_options = MappingField("Format options")
    temperature = FloatField("Temperature", validators=[Optional(), NumberRange(min=0, max=2)])
    max_tokens = WholeNumberField("Max tokens", validators=[Optional(), NumberRange(min=1, max=4096)])
    parent_id = WholeNumberField("Parent generation", validators=[Optional()])

    def validate_format_options(self, field):
        options = field.data or {}
        for key in ("asJson", "includeReasoning"):
            if key in options and not isinstance(options[key], bool):
                raise ValidationError(f"{key} must be a boolean.")
        level = options.get("markdownLevel")
        if level is not None and (isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= 3):
            raise ValidationError("markdownLevel must be an integer between 0 and 3.")

    def format_option_params(self) -> dict:
        options = self.format_options.data or {}
        params = {}
        if "asJson" in options:
            params["as_json"] = options["asJson"]
        if options.get("markdownLevel") is not None:
            params["markdown_level"] = options["markdownLevel"]
        if "includeReasoning" in options:
            params["include_reasoning"] = options["includeReasoning"]
        return params


class GenerationForm(_TuningForm):
    task = TextField("Task", validators=[_required("task")])


class CharacterParamsForm(JSONForm):
    name = TextField("Name", validators=[Optional(), Length(max=120)])
    role = TextField("Role", validators=[Optional(), Length(max=120)])
    age_range = TextField("Age range", validators=[Optional(), Length(max=60)])
    key_traits = StringListField("Key traits")
    setting_description = TextField("Setting description", validators=[Optional(), Length(max=2000)])
    related_characters = StringListField("Related characters")
    narrative_importance = TextField("Narrative importance", validators=[Optional(), Length(max=60)])


class PlotParamsForm(JSONForm):
    plot_points = StringListField("Plot points")
    characters = StringListField("Characters")
    setting = TextField("Setting", validators=[Optional(), Length(max=2000)])
    conflict_type = TextField("Conflict type", validators=[Optional(), Length(max=120)])
    desired_length = TextField("Desired length", validators=[Optional(), AnyOf(tuple(PLOT_LENGTH_GUIDANCE))])


class SettingParamsForm(JSONForm):
    location_type = TextField("Location type", validators=[Optional(), Length(max=120)])
    time_period = TextField("Time period", validators=[Optional(), Length(max=120)])
    mood = TextField("Mood", validators=[Optional(), Length(max=120)])
    key_features = StringListField("Key features")


class ChapterParamsForm(JSONForm):
    title = TextField("Title", validators=[Optional(), Length(max=150)])
    characters_present = StringListField("Characters present")
    setting = TextField("Setting", validators=[Optional(), Length(max=2000)])
    previous_chapter_summary = TextField("Previous chapter summary", validators=[Optional(), Length(max=5000)])
    goals = StringListField("Goals")
    word_count = WholeNumberField("Word count", validators=[Optional(), NumberRange(min=1, max=10000)])


class EditorialParamsForm(JSONForm):
    content = TextField("Content", validators=[_required("content")])
    focus_areas = StringListField("Focus areas")

    def validate_focus_areas(self, field):
        unknown = [area for area in field.data or [] if area not in FOCUS_AREAS]
        if unknown:
            raise ValidationError(f"Unsupported focus areas: {', '.join(unknown)}")


TASK_PARAM_FORMS = {
    "character": CharacterParamsForm,
    "plot": PlotParamsForm,
    "setting": SettingParamsForm,
    "chapter": ChapterParamsForm,
    "editorial": EditorialParamsForm,
}


class ExpansionForm(_TuningForm):
    entity_type = TextField("Entity type", validators=[_required("entityType"), AnyOf(EXPANSION_ENTITY_TYPES)])
    focus = TextField("Focus", validators=[_required("focus"), AnyOf(EXPANSION_FOCUS_AREAS)])
    entity = MappingField("Entity", validators=[_required("entity")])
    setting_description = TextField("Setting description", validators=[Optional(), Length(max=2000)])
    related_characters = StringListField("Related characters")


class ImageGenerationForm(_CallerForm):
    prompt = TextField("Prompt", validators=[_required("prompt"), Length(min=1, max=1000)])
    size = TextField("Size", validators=[Optional(), AnyOf(IMAGE_SIZES)])

