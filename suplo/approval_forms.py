from __future__ import annotations

import json
import time
from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator

from .errors import ValidationError
from .utils.time_utils import slack_date_token

TIMESHEET_CALLBACK = "timesheet_modal"
LEAVE_REQUEST_CALLBACK = "leaverequest_modal"
TIMESHEET_APPROVE = "approve_request"
TIMESHEET_REJECT = "reject_request"
LEAVE_APPROVE = "approve_request_lr"
LEAVE_REJECT = "reject_request_lr"

WORK_MODES = ("WFO", "WFA", "Hybrid")

# work mode -> (status text, status emoji)
WORK_MODE_STATUS = {
    "WFO": ("Office", ":office:"),
    "Hybrid": ("Commuting", ":bus:"),
    "WFA": ("Working remotely", ":house_with_garden:"),
}


class TimesheetRequest(BaseModel):
    email: str = "unknown@example.com"
    startDatetime: int
    endDatetime: int
    workMode: Literal["WFO", "WFA", "Hybrid"]
    userId: str

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.endDatetime < self.startDatetime:
            raise ValueError("End datetime must be after the start datetime")
        return self

    def status(self) -> tuple[str, str]:
        return WORK_MODE_STATUS.get(self.workMode, WORK_MODE_STATUS["WFO"])

    def summary(self) -> str:
        return (
            f"{slack_date_token(self.startDatetime)} - {slack_date_token(self.endDatetime)}\n"
            f"Work Mode: {self.workMode}"
        )


class LeaveRequest(BaseModel):
    email: str = "unknown@example.com"
    startDate: date
    endDate: date
    title: str = Field(min_length=1)
    note: str = ""
    userId: str

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.endDate < self.startDate:
            raise ValueError("End date must not be before the start date")
        return self

    def summary(self) -> str:
        return f"Title : {self.title}\n{self.startDate.isoformat()} - {self.endDate.isoformat()}\nNote: {self.note}"


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------
def _state_value(values: dict, block_id: str, action_id: str, key: str):
    try:
        element = values[block_id][action_id]
    except (KeyError, TypeError):
        return None
    v = element.get(key)
    if key == "selected_option":
        return (v or {}).get("value")
    return v


def _validation_error(e: PydanticValidationError, block_for: dict[str, str], label: str) -> ValidationError:
    errors: dict[str, str] = {}
    for err in e.errors():
        loc = err.get("loc") or ()
        field = str(loc[0]) if loc else ""
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        # model-level validators have no field; pin them on the end field
        block = block_for.get(field) or block_for.get("__model__")
        if block and block not in errors:
            errors[block] = msg
    return ValidationError(f"Invalid {label} submission", errors)


def parse_timesheet_view(view: dict, user_id: str, email: str = "unknown@example.com") -> TimesheetRequest:
    values = ((view or {}).get("state") or {}).get("values") or {}
    raw = {
        "email": email,
        "startDatetime": _state_value(values, "start_datetime_block", "start_datetime", "selected_date_time"),
        "endDatetime": _state_value(values, "end_datetime_block", "end_datetime", "selected_date_time"),
        "workMode": _state_value(values, "work_mode_block", "work_mode", "selected_option"),
        "userId": user_id,
    }
    try:
        return TimesheetRequest.model_validate(raw)
    except PydanticValidationError as e:
        raise _validation_error(e, {
            "startDatetime": "start_datetime_block",
            "endDatetime": "end_datetime_block",
            "workMode": "work_mode_block",
            "__model__": "end_datetime_block",
        }, "timesheet") from e


def parse_leave_view(view: dict, user_id: str, email: str = "unknown@example.com") -> LeaveRequest:
    values = ((view or {}).get("state") or {}).get("values") or {}
    raw = {
        "email": email,
        "title": _state_value(values, "title_block", "title", "value"),
        "startDate": _state_value(values, "start_date_block", "start_date", "selected_date"),
        "endDate": _state_value(values, "end_date_block", "end_date", "selected_date"),
        "note": _state_value(values, "note_block", "note", "value") or "",
        "userId": user_id,
    }
    try:
        return LeaveRequest.model_validate(raw)
    except PydanticValidationError as e:
        raise _validation_error(e, {
            "title": "title_block",
            "startDate": "start_date_block",
            "endDate": "end_date_block",
            "note": "note_block",
            "__model__": "end_date_block",
        }, "leave request") from e


def parse_button_value(value: str | None, model):
    """Decode the JSON metadata carried by an Approve/Reject button."""
    try:
        return model.model_validate(json.loads(value or ""))
    except (ValueError, PydanticValidationError) as e:
        raise ValidationError("Malformed approval payload") from e


# ----------------------------------------------------------------------
# Views & blocks
# ----------------------------------------------------------------------
def _plain(text: str) -> dict:
    return {"type": "plain_text", "text": text}


def timesheet_modal(now: Optional[int] = None) -> dict:
    initial = int(now if now is not None else time.time())
    return {
        "type": "modal",
        "callback_id": TIMESHEET_CALLBACK,
        "title": _plain("Submit TimeSheet"),
        "submit": _plain("Submit"),
        "close": _plain("Cancel"),
        "blocks": [
            {
                "type": "input",
                "block_id": "start_datetime_block",
                "element": {"type": "datetimepicker", "action_id": "start_datetime", "initial_date_time": initial},
                "label": _plain("Start datetime"),
            },
            {
                "type": "input",
                "block_id": "end_datetime_block",
                "element": {"type": "datetimepicker", "action_id": "end_datetime", "initial_date_time": initial},
                "label": _plain("End datetime"),
            },
            {
                "type": "input",
                "block_id": "work_mode_block",
                "element": {
                    "type": "static_select",
                    "action_id": "work_mode",
                    "placeholder": _plain("Select work mode"),
                    "options": [{"text": _plain(m), "value": m} for m in WORK_MODES],
                },
                "label": _plain("Work Mode"),
            },
        ],
    }


def leave_request_modal(today: Optional[date] = None) -> dict:
    initial = (today or date.today()).isoformat()
    return {
        "type": "modal",
        "callback_id": LEAVE_REQUEST_CALLBACK,
        "title": _plain("Submit Leave Request"),
        "submit": _plain("Submit"),
        "close": _plain("Cancel"),
        "blocks": [
            {
                "type": "input",
                "block_id": "title_block",
                "label": _plain("Title"),
                "element": {"type": "plain_text_input", "action_id": "title", "placeholder": _plain("Enter post title")},
            },
            {
                "type": "input",
                "block_id": "start_date_block",
                "label": _plain("Start Date"),
                "element": {"type": "datepicker", "action_id": "start_date", "initial_date": initial},
            },
            {
                "type": "input",
                "block_id": "end_date_block",
                "label": _plain("End Date"),
                "element": {"type": "datepicker", "action_id": "end_date", "initial_date": initial},
            },
            {
                "type": "input",
                "block_id": "note_block",
                "label": _plain("Note"),
                "element": {
                    "type": "plain_text_input",
                    "action_id": "note",
                    "multiline": True,
                    "placeholder": _plain("Enter additional notes"),
                },
            },
        ],
    }


def approval_request_blocks(text: str, block_id: str, approve_action: str, reject_action: str, value: str) -> list[dict]:
    return [
        {"type": "section", "text": {"type": "mrkdwn", "text": text}},
        {
            "type": "actions",
            "block_id": block_id,
            "elements": [
                {"type": "button", "text": _plain("Approve"), "action_id": approve_action, "style": "primary", "value": value},
                {"type": "button", "text": _plain("Reject"), "action_id": reject_action, "style": "danger", "value": value},
            ],
        },
    ]


def decided_blocks(text: str, decision: str) -> list[dict]:
    """Request message with the buttons replaced by who decided."""
    return [
        {"type": "section", "text": {"type": "mrkdwn", "text": text}},
        {"type": "context", "elements": [{"type": "mrkdwn", "text": decision}]},
    ]
