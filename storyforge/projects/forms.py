from wtforms.validators import AnyOf, DataRequired, Email, Length, NumberRange, Optional

from ..forms import JSONForm, RecordListField, StringListField, TextField, WholeNumberField
from ..models import (
    CHAPTER_STATUSES,
    CHARACTER_ROLES,
    COLLABORATOR_ROLES,
    OBJECT_TYPES,
    PLOT_STATUSES,
    PLOT_TYPES,
    SETTING_TYPES,
)


class ProjectForm(JSONForm):
    title = TextField("Project title", validators=[DataRequired(), Length(max=150)])
    description = TextField("Short description", validators=[Optional(), Length(max=2000)])
    genre = TextField("Genre", validators=[Optional(), Length(max=50)])
    target_audience = TextField("Target audience", validators=[Optional(), Length(max=50)])
    status = TextField("Status", default="Draft", validators=[Optional(), Length(max=50)])


class CollaboratorForm(JSONForm):
    email = TextField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    role = TextField("Role", default="Viewer", validators=[Optional(), AnyOf(COLLABORATOR_ROLES)])


class CharacterForm(JSONForm):
    name = TextField("Name", validators=[DataRequired(), Length(max=120)])
    short_description = TextField("Short description", validators=[Optional()])
    background = TextField("Background", validators=[Optional()])
    role = TextField("Story role", validators=[Optional(), AnyOf(CHARACTER_ROLES)])
    physical_traits = StringListField("Physical traits")
    personality_traits = StringListField("Personality traits")
    goals = StringListField("Goals")
    fears = StringListField("Fears")
    skills = StringListField("Skills")
    voice = TextField("Voice", validators=[Optional()])
    arc = TextField("Character arc", validators=[Optional()])
    relationships = RecordListField("Relationships")
    notes = TextField("Notes", validators=[Optional()])


class PlotForm(JSONForm):
    title = TextField("Title", validators=[DataRequired(), Length(max=150)])
    description = TextField("Description", validators=[Optional()])
    plot_type = TextField("Plot type", default="Main Plot", validators=[Optional(), AnyOf(PLOT_TYPES)])
    structure = TextField("Structure", validators=[Optional(), Length(max=50)])
    importance = WholeNumberField("Importance", default=5, validators=[Optional(), NumberRange(min=1, max=10)])
    status = TextField("Status", default="Planned", validators=[Optional(), AnyOf(PLOT_STATUSES)])
    notes = TextField("Notes", validators=[Optional()])


class SettingForm(JSONForm):
    name = TextField("Name", validators=[DataRequired(), Length(max=150)])
    description = TextField("Description", validators=[Optional()])
    setting_type = TextField("Setting type", default="Other", validators=[Optional(), AnyOf(SETTING_TYPES)])
    time_period = TextField("Time period", validators=[Optional(), Length(max=120)])
    mood = TextField("Mood", validators=[Optional(), Length(max=120)])
    key_features = StringListField("Key features")
    notes = TextField("Notes", validators=[Optional()])


class StoryObjectForm(JSONForm):
    name = TextField("Name", validators=[DataRequired(), Length(max=150)])
    description = TextField("Description", validators=[Optional()])
    object_type = TextField("Object type", default="Item", validators=[Optional(), AnyOf(OBJECT_TYPES)])
    significance = TextField("Significance", validators=[Optional()])
    history = TextField("History", validators=[Optional()])
    owner_id = WholeNumberField("Owner", validators=[Optional()])
    notes = TextField("Notes", validators=[Optional()])


class ChapterForm(JSONForm):
    title = TextField("Title", validators=[DataRequired(), Length(max=150)])
    position = WholeNumberField("Position", default=1, validators=[Optional(), NumberRange(min=1)])
    synopsis = TextField("Synopsis", validators=[Optional()])
    content = TextField("Content", validators=[Optional()])
    status = TextField("Status", default="Draft", validators=[Optional(), AnyOf(CHAPTER_STATUSES)])
    notes = TextField("Notes", validators=[Optional()])


class PromoteGenerationForm(JSONForm):
    generation_id = WholeNumberField("Generation", validators=[DataRequired(message="Missing required field: generationId")])
