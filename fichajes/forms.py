"""WTForms form classes validating JSON payloads and query strings."""

from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import BooleanField, SelectField, StringField
from wtforms.validators import UUID, AnyOf, DataRequired, Length, Optional, StopValidation

from fichajes.domain import ClockEventType, EventSource, PunchCorrectionStatus


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _text(_form, field) -> None:
    # JSON bodies may carry numbers, lists or objects where a string is expected.
    if field.data is not None and not isinstance(field.data, str):
        raise StopValidation("Must be a string.")


class ClockEventForm(FlaskForm):
    """A new clock event: ``timestamp`` (ISO) or ``date`` plus ``time``."""

    type = SelectField(
        "Type",
        choices=[(event_type.value, event_type.value) for event_type in ClockEventType],
        validators=[DataRequired()],
    )
    timestamp = StringField("Timestamp", validators=[Optional(), _text, Length(max=64)], filters=[_strip])
    date = StringField("Date", validators=[Optional(), _text, Length(max=32)], filters=[_strip])
    time = StringField("Time", validators=[Optional(), _text, Length(max=16)], filters=[_strip])
    source = SelectField(
        "Source",
        choices=[
            (source.value, source.value)
            for source in EventSource
            if source not in (EventSource.AUTO, EventSource.MANUAL)
        ],
        default=EventSource.WEB.value,
    )

    def validate(self, extra_validators=None) -> bool:
        if not super().validate(extra_validators=extra_validators):
            return False
        if not self.timestamp.data and not (self.date.data and self.time.data):
            self.timestamp.errors.append("Provide timestamp, or date and time.")
            return False
        return True


class CorrectionForm(FlaskForm):
    event_id = StringField("Event", validators=[DataRequired(), _text, UUID()], filters=[_strip])
    new_time = StringField("New time", validators=[DataRequired(), _text, Length(max=64)], filters=[_strip])
    reason = StringField("Reason", validators=[DataRequired(), _text, Length(max=1000)], filters=[_strip])
    actor = StringField("Actor", validators=[DataRequired(), _text, Length(max=255)], filters=[_strip])


class BatchCorrectionItemForm(CorrectionForm):
    date = StringField("Date", validators=[DataRequired(), _text, Length(max=32)], filters=[_strip])


class EventInsertionForm(FlaskForm):
    """A forgotten clock event added to a closed day at its real time."""

    type = SelectField(
        "Type",
        choices=[(event_type.value, event_type.value) for event_type in ClockEventType],
        validators=[DataRequired()],
    )
    time = StringField("Time", validators=[DataRequired(), _text, Length(max=64)], filters=[_strip])
    reason = StringField("Reason", validators=[DataRequired(), _text, Length(max=1000)], filters=[_strip])
    actor = StringField("Actor", validators=[DataRequired(), _text, Length(max=255)], filters=[_strip])


class BatchInsertionItemForm(EventInsertionForm):
    date = StringField("Date", validators=[DataRequired(), _text, Length(max=32)], filters=[_strip])


class PunchCorrectionForm(FlaskForm):
    event_id = StringField("Event", validators=[Optional(), _text, UUID()], filters=[_strip])
    type = StringField(
        "Missing event type",
        validators=[Optional(), _text, AnyOf([event_type.value for event_type in ClockEventType])],
        filters=[_strip],
    )
    new_time = StringField("New time", validators=[DataRequired(), _text, Length(max=64)], filters=[_strip])
    reason = StringField("Reason", validators=[DataRequired(), _text, Length(max=1000)], filters=[_strip])
    requested_by = StringField("Requested by", validators=[DataRequired(), _text, Length(max=255)], filters=[_strip])

    def validate(self, extra_validators=None) -> bool:
        if not super().validate(extra_validators=extra_validators):
            return False
        if bool(self.event_id.data) == bool(self.type.data):
            self.event_id.errors.append("Provide event_id to move an event, or type to add a missing one.")
            return False
        return True


class DecisionForm(FlaskForm):
    actor = StringField("Actor", validators=[DataRequired(), _text, Length(max=255)], filters=[_strip])
    comment = StringField("Comment", validators=[Optional(), _text, Length(max=1000)], filters=[_strip])


class CorrectionRequestQueryForm(FlaskForm):
    status = StringField(
        "Status",
        validators=[Optional(), _text, AnyOf([status.value for status in PunchCorrectionStatus])],
        filters=[_strip],
    )


class DayActionForm(FlaskForm):
    actor = StringField("Actor", validators=[Optional(), _text, Length(max=255)], filters=[_strip])
    reason = StringField("Reason", validators=[Optional(), _text, Length(max=1000)], filters=[_strip])


class BatchOptionsForm(FlaskForm):
    mass = BooleanField("Mass correction", default=False)


class SummaryQueryForm(FlaskForm):
    date_from = StringField("From", validators=[Optional(), _text, Length(max=32)], filters=[_strip])
    date_to = StringField("To", validators=[Optional(), _text, Length(max=32)], filters=[_strip])
    preset = StringField("Preset", validators=[Optional(), _text, AnyOf(["week", "month", "year"])], filters=[_strip])
    anchor = StringField("Anchor", validators=[Optional(), _text, Length(max=32)], filters=[_strip])
    format = StringField("Format", validators=[Optional(), _text, AnyOf(["csv", "json"])], filters=[_strip])

    def validate(self, extra_validators=None) -> bool:
        if not super().validate(extra_validators=extra_validators):
            return False
        if not self.preset.data and not (self.date_from.data and self.date_to.data):
            self.date_from.errors.append("Provide date_from and date_to, or a preset.")
            return False
        return True


class CloseDaysForm(FlaskForm):
    date = StringField("Date", validators=[Optional(), _text, Length(max=32)], filters=[_strip])
