from __future__ import annotations

from typing import Optional

from .approval_forms import (
    LEAVE_APPROVE,
    LEAVE_REJECT,
    TIMESHEET_APPROVE,
    TIMESHEET_REJECT,
    LeaveRequest,
    TimesheetRequest,
    approval_request_blocks,
    decided_blocks,
)
from .config_service import ConfigService
from .errors import SuploError, UpstreamError
from .logger_factory import get_logger
from .salesforce_client import SalesforceClient
from .slack_gateway import SlackGateway
from .utils.logfmt import fmt
from .utils.time_utils import format_day, format_epoch


class ApprovalService:
    """Time-sheet and leave-request approval flow.

    submit_* posts the request with Approve/Reject buttons to the approval
    channel; approve_* sends it to Salesforce, notifies the requester and
    replaces the buttons; reject_* only notifies and replaces the buttons.
    A Salesforce failure, including a missing Salesforce setup, is reported to
    the requester and leaves the request message (and its buttons) untouched.
    """

    def __init__(
        self,
        gateway: SlackGateway,
        salesforce: Optional[SalesforceClient],
        approval_channel: Optional[str],
        *,
        timezone: str = "Asia/Jakarta",
        config: Optional[ConfigService] = None,
    ):
        self.gateway = gateway
        self.salesforce = salesforce
        self._approval_channel = approval_channel
        self._timezone = timezone
        self.config = config
        self.log = get_logger("Approvals")

    # read per request so config.yaml / env edits apply without a restart
    @property
    def approval_channel(self) -> Optional[str]:
        return self.config.approval_channel() if self.config is not None else self._approval_channel

    @property
    def timezone(self) -> str:
        return self.config.salesforce().timezone if self.config is not None else self._timezone

    def _crm(self) -> SalesforceClient:
        if self.salesforce is None:
            raise UpstreamError("Salesforce", "not configured (set SALESFORCE_URL)")
        return self.salesforce

    async def _notify(self, user_id: str, text: str) -> None:
        try:
            await self.gateway.post_message(user_id, text)
        except SuploError as e:
            self.log.error(f"[approval-notify-failed] {fmt('user', user_id)} {fmt('error', e)}")

    # ------------------------------------------------------------------
    # Time sheet
    # ------------------------------------------------------------------
    async def submit_timesheet(self, req: TimesheetRequest) -> bool:
        try:
            if not self.approval_channel:
                raise SuploError("SLACK_TIMESHEET_CHANNEL is not configured")
            email = await self.gateway.user_email(req.userId)
            req = req.model_copy(update={"email": email})
            text = f"<@{req.userId}> submitted the following TimeSheet: \n{req.summary()}"
            await self.gateway.post_message(
                self.approval_channel,
                text,
                blocks=approval_request_blocks(text, "timesheet_actions", TIMESHEET_APPROVE, TIMESHEET_REJECT, req.model_dump_json()),
            )
        except SuploError as e:
            self.log.error(f"[timesheet-submit-error] {fmt('user', req.userId)} {fmt('error', e)}")
            await self._notify(req.userId, "❌ Sorry, there was an error submitting your timesheet.")
            return False
        self.log.info(f"[timesheet-submitted] {fmt('user', req.userId)} {fmt('mode', req.workMode)}")
        return True

    async def approve_timesheet(self, req: TimesheetRequest, *, approver_id: str, channel: str, ts: str) -> bool:
        try:
            await self._crm().submit_timesheet(
                email=req.email,
                work_start=format_epoch(req.startDatetime, self.timezone),
                work_end=format_epoch(req.endDatetime, self.timezone),
                work_mode=req.workMode,
            )
        except UpstreamError as e:
            self.log.error(f"[timesheet-crm-error] {fmt('user', req.userId)} {fmt('error', e)}")
            await self._notify(req.userId, f"❌ Error processing your timesheet: {e}")
            return False
        try:
            await self.gateway.post_message(req.userId, f"Your timesheet has been :white_check_mark: approved: \n{req.summary()}")
            text = f"Timesheet submitted by <@{req.userId}> : \n({req.summary()})"
            await self.gateway.update_message(channel, ts, text=text, blocks=decided_blocks(text, f":white_check_mark: Approved by <@{approver_id}>"))
            status_text, emoji = req.status()
            await self.gateway.set_user_status(req.userId, status_text, emoji, expiration=req.endDatetime)
        except SuploError as e:
            self.log.error(f"[timesheet-approve-error] {fmt('user', req.userId)} {fmt('error', e)}")
            await self._notify(req.userId, f"❌ Error approving your timesheet: {e}")
            return False
        self.log.info(f"[timesheet-approved] {fmt('user', req.userId)} {fmt('approver', approver_id)}")
        return True

    async def reject_timesheet(self, req: TimesheetRequest, *, approver_id: str, channel: str, ts: str) -> bool:
        try:
            await self.gateway.post_message(req.userId, f"Your timesheet has been :x: rejected: \n{req.summary()}")
            text = f"Timesheet submitted by <@{req.userId}> : \n({req.summary()})"
            await self.gateway.update_message(channel, ts, text=text, blocks=decided_blocks(text, f":x: Rejected by <@{approver_id}>"))
        except SuploError as e:
            self.log.error(f"[timesheet-reject-error] {fmt('user', req.userId)} {fmt('error', e)}")
            await self._notify(req.userId, f"❌ Error rejecting your timesheet: {e}")
            return False
        self.log.info(f"[timesheet-rejected] {fmt('user', req.userId)} {fmt('approver', approver_id)}")
        return True

    # ------------------------------------------------------------------
    # Leave request
    # ------------------------------------------------------------------
    async def submit_leave_request(self, req: LeaveRequest) -> bool:
        try:
            if not self.approval_channel:
                raise SuploError("SLACK_TIMESHEET_CHANNEL is not configured")
            email = await self.gateway.user_email(req.userId)
            req = req.model_copy(update={"email": email})
            text = f"<@{req.userId}> submitted the following Leave Request: \n{req.summary()}"
            await self.gateway.post_message(
                self.approval_channel,
                text,
                blocks=approval_request_blocks(text, "leaverequest_actions", LEAVE_APPROVE, LEAVE_REJECT, req.model_dump_json()),
            )
        except SuploError as e:
            self.log.error(f"[leave-submit-error] {fmt('user', req.userId)} {fmt('error', e)}")
            await self._notify(req.userId, "❌ Sorry, there was an error submitting your Leave Request.")
            return False
        self.log.info(f"[leave-submitted] {fmt('user', req.userId)}")
        return True

    async def approve_leave_request(self, req: LeaveRequest, *, approver_id: str, channel: str, ts: str) -> bool:
        try:
            await self._crm().submit_leave_request(
                email=req.email,
                title=req.title,
                note=req.note,
                start_date=format_day(req.startDate),
                end_date=format_day(req.endDate),
            )
        except UpstreamError as e:
            self.log.error(f"[leave-crm-error] {fmt('user', req.userId)} {fmt('error', e)}")
            await self._notify(req.userId, f"❌ Error processing your Leave Request: {e}")
            return False
        try:
            await self.gateway.post_message(req.userId, f"Your Leave Request has been :white_check_mark: approved: \n{req.summary()}")
            text = f"Leave Request submitted by <@{req.userId}> : \n{req.summary()}"
            await self.gateway.update_message(channel, ts, text=text, blocks=decided_blocks(text, f":white_check_mark: Approved by <@{approver_id}>"))
        except SuploError as e:
            self.log.error(f"[leave-approve-error] {fmt('user', req.userId)} {fmt('error', e)}")
            await self._notify(req.userId, f"❌ Error approving your Leave Request: {e}")
            return False
        self.log.info(f"[leave-approved] {fmt('user', req.userId)} {fmt('approver', approver_id)}")
        return True

    async def reject_leave_request(self, req: LeaveRequest, *, approver_id: str, channel: str, ts: str) -> bool:
        try:
            await self.gateway.post_message(req.userId, f"Your Leave Request has been :x: rejected: \n{req.summary()}")
            text = f"Leave Request submitted by <@{req.userId}> : \n{req.summary()}"
            await self.gateway.update_message(channel, ts, text=text, blocks=decided_blocks(text, f":x: Rejected by <@{approver_id}>"))
        except SuploError as e:
            self.log.error(f"[leave-reject-error] {fmt('user', req.userId)} {fmt('error', e)}")
            await self._notify(req.userId, f"❌ Error rejecting your Leave Request: {e}")
            return False
        self.log.info(f"[leave-rejected] {fmt('user', req.userId)} {fmt('approver', approver_id)}")
        return True
