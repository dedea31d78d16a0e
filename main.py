import json, logging, uuid
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

import agents
import pipeline
import renderer
from errors import DeliveryError, ErrorCode, RenderError, parse_upstream_error
from schemas import RenderRequest, validate_generate_payload, validate_send_email_payload
from settings import load_settings

log_dir = Path(__file__).parent / "logs"
log_dir.mkdir(parents=True, exist_ok=True)
logging.basicConfig(handlers=[logging.FileHandler(log_dir / "giftbrief_main.json")], level=logging.INFO)
logger = logging.getLogger("giftbrief")

app = FastAPI(title="real.ai gifting strategy")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True,
                   allow_methods=["*"], allow_headers=["*"])


def _fail(status: int, code: ErrorCode, error: str, request_id: str, **extra) -> JSONResponse:
    return JSONResponse({"ok": False, "code": code.value, "error": error, "requestId": request_id, **extra},
                        status_code=status)


async def _body(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


@app.post("/generate")
async def generate(request: Request):
    request_id = str(uuid.uuid4())
    submission, issues = validate_generate_payload(await _body(request))
    if issues:
        return _fail(400, ErrorCode.BAD_REQUEST, "Invalid request body", request_id, issues=issues)

    settings = load_settings()
    if not settings.mock_data and not settings.gemini_api_key:
        logger.error(json.dumps({"event": "generate", "request_id": request_id, "error": "missing GEMINI_API_KEY"}))
        return _fail(500, ErrorCode.SERVER_ERROR, "Missing GEMINI_API_KEY", request_id)

    logger.info(json.dumps({"event": "generate", "request_id": request_id, "name": submission.name,
                            "email": submission.email, "mock": settings.mock_data}))
    try:
        narrative = await run_in_threadpool(agents.generate_narrative, submission.problem, settings)
    except Exception as e:
        info = parse_upstream_error(e)
        logger.error(json.dumps({"event": "generate_failed", "request_id": request_id, "status": info.status,
                                 "code": info.code, "message": info.message}))
        error = {
            ErrorCode.RATE_LIMIT: "Rate limited. Try again shortly.",
            ErrorCode.AUTH_ERROR: "Check your Gemini API key.",
        }.get(info.error_code, info.message)
        extra = {"retryAfter": info.retry_after} if info.retry_after else {}
        return _fail(info.http_status, info.error_code, error, request_id, **extra)

    logger.info(json.dumps({"event": "generate_ok", "request_id": request_id}))
    return JSONResponse({"ok": True, "data": narrative.model_dump(), "requestId": request_id})


@app.post("/render-artifact")
async def render_artifact(request: Request):
    try:
        req = RenderRequest.model_validate(await _body(request))
        png = await run_in_threadpool(renderer.render_artifact, req.pdf, req.recipientName, req.industry)
    except (ValidationError, RenderError) as e:
        logger.error(json.dumps({"event": "render_artifact_failed", "error": str(e)}))
        return PlainTextResponse("Failed to generate image", status_code=500)
    return Response(png, media_type="image/png")


@app.post("/send-email")
async def send_email(request: Request):
    request_id = str(uuid.uuid4())
    req, issues = validate_send_email_payload(await _body(request))
    if issues:
        return _fail(400, ErrorCode.BAD_REQUEST, "Invalid request body", request_id, issues=issues)

    settings = load_settings()
    base_url = settings.public_site_url or str(request.base_url)
    logger.info(json.dumps({"event": "send_email", "request_id": request_id, "to": req.userInfo.email}))
    try:
        await run_in_threadpool(pipeline.run_delivery, request_id, base_url,
                                req.submission(), req.aiResponse, settings)
    except (RenderError, DeliveryError) as e:
        logger.error(json.dumps({"event": "send_email_failed", "request_id": request_id,
                                 "code": e.code.value, "error": str(e)}))
        return _fail(500, e.code, str(e), request_id)
    except Exception as e:
        logger.exception(json.dumps({"event": "send_email_failed", "request_id": request_id,
                                     "code": ErrorCode.SERVER_ERROR.value, "error": str(e)}))
        return _fail(500, ErrorCode.SERVER_ERROR, "Failed to send email", request_id)

    logger.info(json.dumps({"event": "send_email_ok", "request_id": request_id}))
    return JSONResponse({"ok": True, "requestId": request_id})


@app.get("/health")
def health():
    return {"status": "ok"}
