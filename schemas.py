"""
Request payloads, the validated Submission, and the NarrativeResult shape.

Validation never raises to the caller: the validate_* helpers return either
the typed value or a list of {path, message} issues for a 400 response.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field, StrictStr, ValidationError, field_validator

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[A-Za-z]{2,}$")


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


# ── Submission ────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Submission:
    problem:  str
    name:     str
    industry: str
    email:    str


# ── Narrative ─────────────────────────────────────────────────────────────────
class NarrativeSections(BaseModel):
    problem_reframe:       StrictStr
    why_gifting_works:     StrictStr
    strategy_shape:        StrictStr
    success_and_next_step: StrictStr


class NarrativeResult(BaseModel):
    """Teaser + preview shown in the UI, sections rendered into the PDF.

    The wire format names the sections block ``pdf``.
    """
    teaser:  StrictStr
    preview: StrictStr
    pdf:     NarrativeSections

    @property
    def deliverable(self) -> bool:
        return bool(self.teaser.strip() and self.preview.strip())


# ── /generate ─────────────────────────────────────────────────────────────────
class _EmailShape(BaseModel):
    @field_validator("email", check_fields=False)
    @classmethod
    def _email_shape(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("email must be valid")
        return value


class FormInfo(BaseModel):
    problemToSolve: StrictStr = Field(min_length=1)


class UserInfo(_EmailShape):
    name:     StrictStr = Field(min_length=1)
    email:    StrictStr
    industry: StrictStr = ""


class GenerateRequest(BaseModel):
    formInfo: FormInfo
    userInfo: UserInfo


# ── /render-artifact ──────────────────────────────────────────────────────────
class RenderRequest(BaseModel):
    recipientName: StrictStr
    industry:      StrictStr
    pdf:           NarrativeSections


# ── /send-email ───────────────────────────────────────────────────────────────
class RecipientInfo(_EmailShape):
    name:     StrictStr
    email:    StrictStr
    industry: StrictStr


class ProblemInfo(BaseModel):
    problemToSolve: StrictStr


class DeliverableNarrative(NarrativeResult):
    teaser:  StrictStr = Field(min_length=1)
    preview: StrictStr = Field(min_length=1)


class SendEmailRequest(BaseModel):
    userInfo:   RecipientInfo
    formInfo:   ProblemInfo
    aiResponse: DeliverableNarrative

    def submission(self) -> Submission:
        return Submission(
            problem=self.formInfo.problemToSolve,
            name=self.userInfo.name,
            industry=self.userInfo.industry,
            email=self.userInfo.email,
        )


# ── Helpers ───────────────────────────────────────────────────────────────────
def issues_from(exc: ValidationError) -> list[dict]:
    issues = []
    for err in exc.errors():
        message = err["msg"]
        if err["type"] == "value_error" and "error" in err.get("ctx", {}):
            message = str(err["ctx"]["error"])
        issues.append({"path": ".".join(str(p) for p in err["loc"]), "message": message})
    return issues


def validate_generate_payload(payload: Any) -> tuple[Optional[Submission], list[dict]]:
    try:
        req = GenerateRequest.model_validate(payload)
    except ValidationError as exc:
        return None, issues_from(exc)
    return Submission(
        problem=req.formInfo.problemToSolve,
        name=req.userInfo.name,
        industry=req.userInfo.industry,
        email=req.userInfo.email,
    ), []


def validate_send_email_payload(payload: Any) -> tuple[Optional[SendEmailRequest], list[dict]]:
    try:
        return SendEmailRequest.model_validate(payload), []
    except ValidationError as exc:
        return None, issues_from(exc)
