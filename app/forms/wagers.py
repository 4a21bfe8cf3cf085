from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, InputRequired, ValidationError


def _strict_integer(form, field):
    """Reject booleans, floats and decimal strings that IntegerField would truncate"""
    if not field.raw_data:
        return
    raw = field.raw_data[0]
    if isinstance(raw, (bool, float)):
        raise ValidationError("Must be a whole number")
    if isinstance(raw, str) and not raw.strip().lstrip("-").isdigit():
        raise ValidationError("Must be a whole number")


class WagerForm(FlaskForm):
    """Place a wager; amounts are checked against the allowed set by the service"""

    match_id = IntegerField("Match", validators=[InputRequired(), _strict_integer])
    selected_team = StringField("Team", validators=[DataRequired()])
    amount = IntegerField("Amount", validators=[InputRequired(), _strict_integer])


class WagerUpdateForm(FlaskForm):
    selected_team = StringField("Team", validators=[DataRequired()])
    amount = IntegerField("Amount", validators=[InputRequired(), _strict_integer])
