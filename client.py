"""HTTP collaborators a Conversation uses to reach a running giftbrief API."""

import asyncio, json, logging
from typing import Optional

import requests

from schemas import NarrativeResult, Submission

logger = logging.getLogger("giftbrief")

API_TIMEOUT = 120


class ApiError(Exception):
    def __init__(self, message: str, code: str = "SERVER_ERROR", status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status


class ApiClient:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _post(self, path: str, payload: dict) -> dict:
        r = self.session.post(f"{self.base_url}{path}", json=payload, timeout=API_TIMEOUT)
        try:
            body = r.json()
        except ValueError:
            body = {}
        if not body.get("ok"):
            raise ApiError(body.get("error") or f"{path} failed", body.get("code", "SERVER_ERROR"), r.status_code)
        return body

    def generate_sync(self, submission: Submission) -> NarrativeResult:
        body = self._post("/generate", {
            "formInfo": {"problemToSolve": submission.problem},
            "userInfo": {"name": submission.name, "email": submission.email, "industry": submission.industry},
        })
        narrative = NarrativeResult.model_validate(body.get("data") or {})
        if not narrative.deliverable:
            raise ApiError("Generate returned empty data")
        return narrative

    def send_email_sync(self, submission: Submission, narrative: NarrativeResult) -> None:
        self._post("/send-email", {
            "userInfo":   {"name": submission.name, "email": submission.email, "industry": submission.industry},
            "formInfo":   {"problemToSolve": submission.problem},
            "aiResponse": narrative.model_dump(),
        })
        logger.info(json.dumps({"event": "client_email_sent", "to": submission.email}))

    async def generate(self, submission: Submission) -> NarrativeResult:
        return await asyncio.to_thread(self.generate_sync, submission)

    async def send_email(self, submission: Submission, narrative: NarrativeResult) -> None:
        if not (submission.email and submission.problem and narrative.deliverable):
            logger.warning(json.dumps({"event": "client_email_skipped", "to": submission.email}))
            return
        await asyncio.to_thread(self.send_email_sync, submission, narrative)
