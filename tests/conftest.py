import os
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("GEMINI_API_KEY", "test_gemini_key")
os.environ.setdefault("SENDGRID_API_KEY", "test_sendgrid_key")
os.environ.setdefault("SENDGRID_FROM_EMAIL", "team@example.com")
os.environ.setdefault("PUBLIC_SITE_URL", "https://gifting.example.com")


class FakeHandle:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock with the same call_later contract as LoopScheduler."""

    def __init__(self):
        self.now = 0
        self._handles = []

    def call_later(self, delay_ms, callback):
        handle = FakeHandle(self.now + delay_ms, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self._handles if not h.cancelled]

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = [h for h in self.pending if h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self._handles.remove(handle)
            self.now = handle.due
            handle.callback()
        self.now = target


@pytest.fixture()
def scheduler():
    return FakeScheduler()


@pytest.fixture()
def sections_payload():
    return {
        "problem_reframe": "Clients forget you between renewals.",
        "why_gifting_works": "Gifts are remembered longer than emails.",
        "strategy_shape": "Anchor gestures to moments that matter.",
        "success_and_next_step": "Warmer renewals. Let's map it together.",
    }


@pytest.fixture()
def narrative_payload(sections_payload):
    return {
        "teaser": "Your clients need moments that stick.",
        "preview": "A strategy built around timing and intent.",
        "pdf": sections_payload,
    }
