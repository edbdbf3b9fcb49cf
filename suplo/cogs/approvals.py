from __future__ import annotations

from suplo.approval_forms import (
    LEAVE_APPROVE,
    LEAVE_REJECT,
    LEAVE_REQUEST_CALLBACK,
    TIMESHEET_APPROVE,
    TIMESHEET_CALLBACK,
    TIMESHEET_REJECT,
    LeaveRequest,
    TimesheetRequest,
    leave_request_modal,
    parse_button_value,
    parse_leave_view,
    parse_timesheet_view,
    timesheet_modal,
)
from suplo.errors import SuploError, ValidationError
from suplo.logger_factory import get_logger
from suplo.utils.logfmt import fmt

log = get_logger("Cog.Approvals")


async def open_modal(services, body: dict, view: dict, name: str) -> None:
    try:
        await services.gateway.open_view(body.get("trigger_id", ""), view)
    except SuploError as e:
        log.error(f"[{name}-modal-error] {fmt('user', body.get('user_id'))} {fmt('error', e)}")


async def decide(services, body: dict, action: dict, model, handler_name: str) -> None:
    """Run an approve/reject handler for the request encoded in the button."""
    try:
        req = parse_button_value(action.get("value"), model)
    except ValidationError as e:
        log.error(f"[{handler_name}-payload-error] {fmt('error', e)}")
        return
    handler = getattr(services.approvals, handler_name)
    await handler(
        req,
        approver_id=(body.get("user") or {}).get("id", ""),
        channel=(body.get("channel") or {}).get("id", ""),
        ts=(body.get("message") or {}).get("ts", ""),
    )


def setup(app, services) -> None:
    @app.command("/timesheet-lks")
    async def timesheet_command(ack, body):
        await ack()
        await open_modal(services, body, timesheet_modal(), "timesheet")

    @app.command("/leaverequest-lks")
    async def leave_command(ack, body):
        await ack()
        await open_modal(services, body, leave_request_modal(), "leave")

    @app.view(TIMESHEET_CALLBACK)
    async def timesheet_submitted(ack, body, view):
        user_id = (body.get("user") or {}).get("id", "")
        try:
            req = parse_timesheet_view(view, user_id)
        except ValidationError as e:
            await ack(response_action="errors", errors=e.errors)
            return
        await ack()
        await services.approvals.submit_timesheet(req)

    @app.view(LEAVE_REQUEST_CALLBACK)
    async def leave_submitted(ack, body, view):
        user_id = (body.get("user") or {}).get("id", "")
        try:
            req = parse_leave_view(view, user_id)
        except ValidationError as e:
            await ack(response_action="errors", errors=e.errors)
            return
        await ack()
        await services.approvals.submit_leave_request(req)

    @app.action(TIMESHEET_APPROVE)
    async def timesheet_approve(ack, body, action):
        await ack()
        await decide(services, body, action, TimesheetRequest, "approve_timesheet")

    @app.action(TIMESHEET_REJECT)
    async def timesheet_reject(ack, body, action):
        await ack()
        await decide(services, body, action, TimesheetRequest, "reject_timesheet")

    @app.action(LEAVE_APPROVE)
    async def leave_approve(ack, body, action):
        await ack()
        await decide(services, body, action, LeaveRequest, "approve_leave_request")

    @app.action(LEAVE_REJECT)
    async def leave_reject(ack, body, action):
        await ack()
        await decide(services, body, action, LeaveRequest, "reject_leave_request")
