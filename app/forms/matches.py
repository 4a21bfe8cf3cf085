from flask_wtf import FlaskForm
from wtforms import BooleanField, DateTimeField, StringField
from wtforms.validators import DataRequired, Length, Optional

# Accepted match_date layouts; values without an offset are read in the
# application timezone
MATCH_DATE_FORMATS = [
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
]


class MatchForm(FlaskForm):
    team1 = StringField("Team 1", validators=[DataRequired(), Length(max=100)])
    team2 = StringField("Team 2", validators=[DataRequired(), Length(max=100)])
    venue = StringField("Venue", validators=[DataRequired(), Length(max=200)])
    match_date = DateTimeField(
        "Match Date", format=MATCH_DATE_FORMATS, validators=[DataRequired()]
    )


class SettleMatchForm(FlaskForm):
    """Declare a winner, mark the match abandoned, or send neither to reset it"""

    winner = StringField("Winner", validators=[Optional()])
    is_abandoned = BooleanField(
        "Abandoned", false_values=(False, "false", "0", 0, "", None)
    )
