import html

from flask_wtf import FlaskForm
from wtforms import BooleanField, PasswordField, SelectField, StringField
from wtforms.validators import (
    DataRequired,
    EqualTo,
    Length,
    Optional,
    Regexp,
    ValidationError,
)

from app.models.user import ROLE_ADMIN, ROLE_USER
from app.storage import get_storage


def sanitize_input(text):
    """Sanitize user input to prevent XSS"""
    if not text:
        return text
    return html.escape(text.strip())


PASSWORD_VALIDATORS = [
    DataRequired(),
    Length(min=8, message="Password must be at least 8 characters long"),
    Regexp(
        r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).*$",
        message="Password must contain at least one uppercase letter, one lowercase letter, and one number",
    ),
]


class LoginForm(FlaskForm):
    username = StringField(
        "Username", validators=[DataRequired(), Length(min=3, max=80)]
    )
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember Me", false_values=(False, "false", "", None))


class RegistrationForm(FlaskForm):
    username = StringField(
        "Username",
        validators=[
            DataRequired(),
            Length(
                min=3, max=80, message="Username must be between 3 and 80 characters"
            ),
            Regexp(
                r"^[a-zA-Z0-9_.-]+$",
                message="Username can only contain letters, numbers, dots, underscores, and hyphens",
            ),
        ],
    )
    full_name = StringField(
        "Full Name",
        validators=[
            DataRequired(),
            Length(max=100),
            Regexp(
                r"^[a-zA-Z0-9 _.'-]*$",
                message="Full name contains invalid characters",
            ),
        ],
    )
    password = PasswordField("Password", validators=PASSWORD_VALIDATORS)
    password_confirm = PasswordField(
        "Confirm Password",
        validators=[
            Optional(),
            EqualTo("password", message="Passwords must match"),
        ],
    )

    def validate_username(self, username):
        if get_storage().get_user_by_username(username.data):
            raise ValidationError(
                "Username already exists. Please choose a different username."
            )


class UserCreateForm(RegistrationForm):
    """Account created by an administrator, who may grant the admin role"""

    role = SelectField(
        "Role",
        choices=[(ROLE_USER, "User"), (ROLE_ADMIN, "Administrator")],
        default=ROLE_USER,
        validators=[Optional()],
    )
