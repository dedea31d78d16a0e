"""
Runtime configuration, read from the environment on every call so a running
process (or a test) picks up changes without a restart.
"""

import os
from dataclasses import dataclass

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1"
SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"


@dataclass(frozen=True)
class Settings:
    gemini_api_key:       str
    gemini_model:         str
    sendgrid_api_key:     str
    sendgrid_template_id: str
    sendgrid_from_email:  str
    mock_data:            bool
    public_site_url:      str
    schedule_url:         str


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() == "true"


def load_settings() -> Settings:
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
        sendgrid_api_key=os.getenv("SENDGRID_API_KEY", ""),
        sendgrid_template_id=os.getenv("SENDGRID_SOLUTION_TEMPLATE_ID", ""),
        sendgrid_from_email=os.getenv("SENDGRID_FROM_EMAIL", "hello@real.ai"),
        mock_data=_flag("MOCK_DATA"),
        public_site_url=os.getenv("PUBLIC_SITE_URL", "").rstrip("/"),
        schedule_url=os.getenv("SCHEDULE_URL", "https://yoursite.com/schedule"),
    )
