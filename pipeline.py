"""
Delivery graph behind /send-email:

    render    — POSTs the narrative to /render-artifact, receives PNG bytes
    document  — wraps the PNG into a one-page PDF
    dispatch  — emails the PDF through SendGrid

A failing node raises and stops the graph, so nothing is dispatched after a
render failure.
"""

import json, logging
from typing import TypedDict

import requests
from langgraph.graph import StateGraph, START, END

import mailer
import renderer
from errors import RenderError
from schemas import NarrativeResult, Submission
from settings import Settings

logger = logging.getLogger("giftbrief")

RENDER_PATH    = "/render-artifact"
RENDER_TIMEOUT = 30


class DeliveryState(TypedDict):
    request_id: str
    base_url:   str
    settings:   Settings
    submission: Submission
    narrative:  NarrativeResult
    png:        bytes
    pdf:        bytes
    mode:       str


def fetch_artifact(base_url: str, submission: Submission, narrative: NarrativeResult) -> bytes:
    try:
        r = requests.post(
            f"{base_url.rstrip('/')}{RENDER_PATH}",
            headers={"Accept": "image/png"},
            json={
                "recipientName": submission.name,
                "industry":      submission.industry,
                "pdf":           narrative.pdf.model_dump(),
            },
            timeout=RENDER_TIMEOUT,
        )
        r.raise_for_status()
    except requests.RequestException as e:
        raise RenderError(f"Artifact render call failed: {e}") from e
    if not r.headers.get("content-type", "").startswith("image/png"):
        raise RenderError(f"Artifact render returned {r.headers.get('content-type')!r}")
    return r.content


# ── Nodes ─────────────────────────────────────────────────────────────────────
def render_node(state: DeliveryState) -> dict:
    logger.info(json.dumps({"event": "render", "request_id": state["request_id"]}))
    return {"png": fetch_artifact(state["base_url"], state["submission"], state["narrative"])}


def document_node(state: DeliveryState) -> dict:
    return {"pdf": renderer.wrap_png_as_pdf(state["png"])}


def dispatch_node(state: DeliveryState) -> dict:
    logger.info(json.dumps({"event": "dispatch", "request_id": state["request_id"],
                            "to": state["submission"].email}))
    mode = mailer.send_solution_email(state["submission"], state["narrative"], state["pdf"], state["settings"])
    return {"mode": mode}


# ── Build & Compile Graph ─────────────────────────────────────────────────────
def build_graph():
    g = StateGraph(DeliveryState)
    g.add_node("render",   render_node)
    g.add_node("document", document_node)
    g.add_node("dispatch", dispatch_node)
    g.add_edge(START,      "render")
    g.add_edge("render",   "document")
    g.add_edge("document", "dispatch")
    g.add_edge("dispatch", END)
    return g.compile()

graph = build_graph()


def run_delivery(request_id: str, base_url: str, submission: Submission,
                 narrative: NarrativeResult, settings: Settings) -> str:
    initial: DeliveryState = {
        "request_id": request_id,
        "base_url":   base_url,
        "settings":   settings,
        "submission": submission,
        "narrative":  narrative,
        "png":        b"",
        "pdf":        b"",
        "mode":       "",
    }
    return graph.invoke(initial)["mode"]
