from wtforms import PasswordField
from wtforms.validators import Email, EqualTo, InputRequired, Length, ValidationError

from ..forms import JSONForm, TextField
from ..models import User


class RegistrationForm(JSONForm):
    display_name = TextField("Display name", validators=[InputRequired(), Length(max=120)])
    email = TextField("Email", validators=[InputRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[InputRequired(), Length(min=8, max=128)])
    confirm_password = PasswordField(
        "Confirm password",
        validators=[InputRequired(), EqualTo("password", message="Passwords must match.")],
    )

    def validate_email(self, field: TextField) -> None:
        if User.query.filter_by(email=field.data.lower()).first():
            raise ValidationError("An account with that email already exists.")


class LoginForm(JSONForm):
    email = TextField("Email", validators=[InputRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[InputRequired()])
