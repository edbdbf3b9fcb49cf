from __future__ import annotations

from typing import Optional

import httpx

from .config_service import SalesforceConfig
from .errors import UpstreamError
from .logger_factory import get_logger
from .utils.logfmt import fmt


class SalesforceClient:
    """Posts approved time sheets and leave requests to the Salesforce Apex REST API.

    Every submission fetches a fresh token with the OAuth2 password grant.
    """

    def __init__(self, cfg: SalesforceConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.cfg = cfg
        self.log = get_logger("Salesforce")
        self._client = httpx.AsyncClient(timeout=cfg.timeout, transport=transport)

    async def get_token(self) -> str:
        params = {
            "grant_type": "password",
            "client_id": self.cfg.client_id or "",
            "client_secret": self.cfg.client_secret or "",
            "username": self.cfg.username or "",
            "password": self.cfg.password or "",
        }
        try:
            r = await self._client.post(f"{self.cfg.instance_url}/services/oauth2/token", params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UpstreamError("Salesforce token", str(e)) from e
        if not r.is_success:
            raise UpstreamError("Salesforce token", r.reason_phrase or r.text[:300], status=r.status_code)
        try:
            return r.json()["access_token"]
        except (ValueError, KeyError) as e:
            raise UpstreamError("Salesforce token", "response has no access_token", status=r.status_code) from e

    async def _submit(self, path: str, payload: dict, kind: str) -> None:
        token = await self.get_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        try:
            r = await self._client.post(f"{self.cfg.instance_url}{path}", json=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UpstreamError("Salesforce", f"email: {payload.get('Email')}, {e}") from e
        if not r.is_success:
            self.log.error(f"[crm-error] {fmt('kind', kind)} {fmt('email', payload.get('Email'))} {fmt('status', r.status_code)}")
            raise UpstreamError("Salesforce", f"email: {payload.get('Email')}, API Error: {r.text[:500]}", status=r.status_code)
        self.log.info(f"[crm-submitted] {fmt('kind', kind)} {fmt('email', payload.get('Email'))}")

    async def submit_timesheet(self, *, email: str, work_start: str, work_end: str, work_mode: str) -> None:
        await self._submit(
            self.cfg.timesheet_path,
            {"Email": email, "WorkStart": work_start, "WorkEnd": work_end, "WorkMode": work_mode},
            "timesheet",
        )

    async def submit_leave_request(self, *, email: str, title: str, note: str, start_date: str, end_date: str) -> None:
        await self._submit(
            self.cfg.leave_request_path,
            {"Email": email, "Title": title, "Note": note, "StartDate": start_date, "EndDate": end_date},
            "leave_request",
        )

    async def aclose(self) -> None:
        await self._client.aclose()
