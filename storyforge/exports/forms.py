from typing import Any, Dict, List

from wtforms.validators import AnyOf, DataRequired, Length, Optional, ValidationError

from ..forms import JSONForm, MappingField, TextField
from ..services.exporters import EXPORT_FORMATS, ExportOptions

# JSON key -> ExportOptions attribute
CONFIGURATION_FLAGS = {
    "includeTitlePage": "include_title_page",
    "includeTableOfContents": "include_table_of_contents",
    "includeCharacterList": "include_character_list",
    "includeSettingDescriptions": "include_setting_descriptions",
}


class ExportForm(JSONForm):
    name = TextField(
        "Name",
        validators=[DataRequired(message="Missing required field: name"), Length(max=100)],
    )
    format = TextField(
        "Format",
        validators=[DataRequired(message="Missing required field: format"), AnyOf(EXPORT_FORMATS)],
    )
    description = TextField("Description", validators=[Optional(), Length(max=500)])
    configuration = MappingField("Configuration")

    def validate_configuration(self, field):
        configuration = field.data or {}
        for key in CONFIGURATION_FLAGS:
            if key in configuration and not isinstance(configuration[key], bool):
                raise ValidationError(f"{key} must be a boolean.")
        chapters = configuration.get("includeChapters", [])
        if not isinstance(chapters, list) or any(
            isinstance(item, bool) or not isinstance(item, int) for item in chapters
        ):
            raise ValidationError("includeChapters must be a list of chapter ids.")

    def chapter_ids(self) -> List[int]:
        return list((self.configuration.data or {}).get("includeChapters", []))

    def export_options(self) -> ExportOptions:
        configuration = self.configuration.data or {}
        options = ExportOptions()
        for key, attr in CONFIGURATION_FLAGS.items():
            if key in configuration:
                setattr(options, attr, configuration[key])
        return options

    def stored_configuration(self, chapter_ids: List[int]) -> Dict[str, Any]:
        options = self.export_options()
        stored: Dict[str, Any] = {key: getattr(options, attr) for key, attr in CONFIGURATION_FLAGS.items()}
        stored["includeChapters"] = chapter_ids
        return stored
