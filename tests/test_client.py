import asyncio

import pytest

from agents import MOCK_RESPONSE
from client import ApiClient, ApiError
from schemas import Submission

SUBMISSION = Submission(problem="clients forget us", name="Ana", industry="finance", email="ana@x.com")


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json))
        return self.responses.pop(0)


def test_generate_returns_narrative():
    session = FakeSession(FakeResponse(200, {"ok": True, "data": MOCK_RESPONSE.model_dump()}))
    api = ApiClient("http://api.local/", session=session)

    narrative = asyncio.run(api.generate(SUBMISSION))

    assert narrative == MOCK_RESPONSE
    url, payload = session.calls[0]
    assert url == "http://api.local/generate"
    assert payload["userInfo"]["email"] == "ana@x.com"
    assert payload["formInfo"]["problemToSolve"] == "clients forget us"


def test_generate_surfaces_error_code():
    session = FakeSession(FakeResponse(429, {"ok": False, "code": "RATE_LIMIT", "error": "Rate limited."}))

    with pytest.raises(ApiError) as exc:
        ApiClient("http://api.local", session=session).generate_sync(SUBMISSION)
    assert exc.value.code == "RATE_LIMIT"
    assert exc.value.status == 429


def test_generate_rejects_empty_teaser():
    data = {**MOCK_RESPONSE.model_dump(), "teaser": ""}
    session = FakeSession(FakeResponse(200, {"ok": True, "data": data}))

    with pytest.raises(ApiError):
        ApiClient("http://api.local", session=session).generate_sync(SUBMISSION)


def test_send_email_posts_full_payload():
    session = FakeSession(FakeResponse(200, {"ok": True}))

    asyncio.run(ApiClient("http://api.local", session=session).send_email(SUBMISSION, MOCK_RESPONSE))

    url, payload = session.calls[0]
    assert url == "http://api.local/send-email"
    assert payload["userInfo"]["industry"] == "finance"
    assert payload["aiResponse"]["pdf"]["strategy_shape"] == MOCK_RESPONSE.pdf.strategy_shape


def test_send_email_skipped_without_problem():
    session = FakeSession()
    incomplete = Submission(problem="", name="Ana", industry="finance", email="ana@x.com")

    asyncio.run(ApiClient("http://api.local", session=session).send_email(incomplete, MOCK_RESPONSE))

    assert session.calls == []


def test_non_json_failure_is_server_error():
    session = FakeSession(FakeResponse(502, None))

    with pytest.raises(ApiError) as exc:
        ApiClient("http://api.local", session=session).send_email_sync(SUBMISSION, MOCK_RESPONSE)
    assert exc.value.code == "SERVER_ERROR"
