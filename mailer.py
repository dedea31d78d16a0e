"""
SendGrid delivery over the v3 REST API.

Template mode when SENDGRID_SOLUTION_TEMPLATE_ID is set, otherwise a composed
text + HTML message. Both carry the same PDF attachment. No retries.
"""

import base64, html, json, logging

import requests

from errors import DeliveryError
from schemas import NarrativeResult, Submission
from settings import SENDGRID_API_URL, Settings

logger = logging.getLogger("giftbrief")

ATTACHMENT_NAME = "real-ai-gifting-strategy.pdf"
SEND_TIMEOUT    = 30


def _attachment(pdf: bytes) -> dict:
    return {
        "content":     base64.b64encode(pdf).decode("ascii"),
        "filename":    ATTACHMENT_NAME,
        "type":        "application/pdf",
        "disposition": "attachment",
    }


def template_message(submission: Submission, narrative: NarrativeResult, pdf: bytes, settings: Settings) -> dict:
    return {
        "personalizations": [{
            "to": [{"email": submission.email}],
            "dynamic_template_data": {
                "to":       submission.email,
                "name":     submission.name,
                "industry": submission.industry,
                "problem":  submission.problem,
                "teaser":   narrative.teaser,
                "preview":  narrative.preview,
                **narrative.pdf.model_dump(),
            },
        }],
        "from":        {"email": settings.sendgrid_from_email},
        "template_id": settings.sendgrid_template_id,
        "attachments": [_attachment(pdf)],
    }


def composed_message(submission: Submission, narrative: NarrativeResult, pdf: bytes, settings: Settings) -> dict:
    name, teaser, preview, problem = (html.escape(v) for v in (
        submission.name, narrative.teaser, narrative.preview, submission.problem))
    text = f"Hey {submission.name},\n\n{narrative.teaser}\n\n{narrative.preview}\n\nThanks,\nReal.AI Team"
    body = f"""
      <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Hey {name},</h2>
        <p style="font-size: 16px; line-height: 1.6;">{teaser}</p>
        <div style="background: #f5f5f5; padding: 20px; border-radius: 8px; margin: 20px 0;">
          <p style="font-size: 15px; line-height: 1.6; margin: 0;">{preview}</p>
        </div>
        <p style="color: #666; font-size: 14px;">
          Problem you shared: <strong>{problem}</strong>
        </p>
        <hr style="border: none; border-top: 1px solid #ddd; margin: 30px 0;">
        <p style="font-size: 14px; color: #888;">
          Ready to dive deeper? <a href="{html.escape(settings.schedule_url)}">Schedule a call</a> with our team.
        </p>
      </div>
    """
    return {
        "personalizations": [{"to": [{"email": submission.email}]}],
        "from":    {"email": settings.sendgrid_from_email},
        "subject": f"Your Gifting Strategy for {submission.industry}",
        "content": [
            {"type": "text/plain", "value": text},
            {"type": "text/html",  "value": body},
        ],
        "attachments": [_attachment(pdf)],
    }


def send_solution_email(submission: Submission, narrative: NarrativeResult, pdf: bytes, settings: Settings) -> str:
    """Send one email and return the mode used ("template" or "composed")."""
    if not settings.sendgrid_api_key:
        raise DeliveryError("SENDGRID_API_KEY is not set")

    if settings.sendgrid_template_id:
        mode, message = "template", template_message(submission, narrative, pdf, settings)
    else:
        mode, message = "composed", composed_message(submission, narrative, pdf, settings)

    try:
        r = requests.post(
            SENDGRID_API_URL,
            headers={"Authorization": f"Bearer {settings.sendgrid_api_key}",
                     "Content-Type": "application/json"},
            json=message,
            timeout=SEND_TIMEOUT,
        )
        r.raise_for_status()
    except requests.RequestException as e:
        raise DeliveryError(f"SendGrid send failed: {e}") from e

    logger.info(json.dumps({"event": "email_sent", "mode": mode, "to": submission.email}))
    return mode
