from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .assistant_client import AssistantsClient
from .catalog import FallbackCatalog
from .config import Settings, load_settings
from .errors import AssistantError, InvalidRequestError, UpstreamUnavailable
from .extraction import find_payload_span, is_generating_recommendations, strip_payload
from .mailer import LogOnlyMailer
from .mock_assistant import MockAssistant, is_mock_thread
from .models import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ConnectionReport,
    EmailRequest,
    EmailResponse,
    SessionSummary,
)
from .pipeline import RecommendationAssistant
from .run_poller import RunPoller
from .session_store import SessionStore

BASE_DIR = Path(__file__).resolve().parent

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("diyassist").setLevel(log_level)
logger = logging.getLogger("diyassist.app")

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)

EMAIL_PATH = "/api/email"

Assistant = Union[RecommendationAssistant, MockAssistant]


def create_app(
    settings: Optional[Settings] = None,
    *,
    assistant: Optional[RecommendationAssistant] = None,
    mock_assistant: Optional[MockAssistant] = None,
    client: Optional[AssistantsClient] = None,
    session_store: Optional[SessionStore] = None,
    mailer: Optional[LogOnlyMailer] = None,
) -> FastAPI:
    """Purpose: Build the FastAPI app and wire the assistant collaborators.
    Inputs/Outputs: Optional settings and prebuilt collaborators; returns a FastAPI app.
    Side Effects / State: Loads the fallback catalog and builds the OpenAI client when
        credentials are configured and no assistant is injected.
    Dependencies: Uses RecommendationAssistant, MockAssistant, SessionStore, LogOnlyMailer.
    Failure Modes: A bad fallback catalog file or invalid settings raise at startup.
    Testing Notes: Inject a RecommendationAssistant over a fake client.
    """
    settings = settings or load_settings()
    catalog = FallbackCatalog(settings.fallback_catalog_path, settings.affiliate_tag, settings.marketplace_search_url)
    mock = mock_assistant or MockAssistant(catalog)
    if assistant is None and not settings.mock_mode:
        client = client or AssistantsClient(settings)
        poller = RunPoller(
            client.get_run_status,
            interval_s=settings.poll_interval_s,
            max_attempts=settings.poll_max_attempts,
            timeout_s=settings.poll_timeout_s,
        )
        assistant = RecommendationAssistant(
            client=client,
            poller=poller,
            catalog=catalog,
            prompts_dir=settings.prompts_dir,
            affiliate_tag=settings.affiliate_tag,
            search_url=settings.marketplace_search_url,
        )
    store = session_store or SessionStore(max_sessions=settings.max_sessions)
    email_sender = mailer or LogOnlyMailer(settings.affiliate_tag, settings.marketplace_search_url)
    live = assistant

    if live is None:
        logger.warning("OPENAI_API_KEY is not set; serving canned responses")
    else:
        logger.info("assistant=%s mode=live", settings.assistant_id)

    app = FastAPI(title="DIY Construction Assistant")
    app.state.settings = settings
    app.state.session_store = store

    def select_assistant(thread_id: Optional[str]) -> Assistant:
        # Threads opened in degraded mode stay with the mock for their lifetime.
        if live is None or is_mock_thread(thread_id):
            return mock
        return live

    @app.exception_handler(AssistantError)
    async def handle_assistant_error(request: Request, exc: AssistantError) -> JSONResponse:
        logger.warning("path=%s error=%s detail=%s", request.url.path, exc.__class__.__name__, exc)
        return _error_response(request, exc.status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"Invalid request: {location} {first.get('msg', '')}".strip()
        return _error_response(request, 400, detail)

    @app.post("/api/chat", response_model=ChatResponse, response_model_exclude_none=True)
    def chat(request: ChatRequest) -> ChatResponse:
        """Purpose: Dispatch a chat action to the live or mock assistant.
        Inputs/Outputs: Input is ChatRequest; output is ChatResponse.
        Side Effects / State: Remote thread/run calls; updates the SessionStore.
        Dependencies: Uses select_assistant and SessionStore.
        Failure Modes: InvalidRequestError -> 400 before any upstream call; upstream
            failures on conversation turns -> 500; recommendation failures fall back.
        Testing Notes: Cover each action in both live and mock modes.
        """
        action = (request.action or "").strip()
        logger.info("action=%s thread=%s", action or "-", request.thread_id or "-")
        if action == "createThread":
            return _create_thread(request)
        if action == "sendMessage":
            return _send_message(request)
        if action == "generateRecommendations":
            return _generate_recommendations(request)
        raise InvalidRequestError("Invalid action")

    def _create_thread(request: ChatRequest) -> ChatResponse:
        assistant = select_assistant(None)
        try:
            reply = assistant.create_thread(request.message, request.messages or [])
        except UpstreamUnavailable as exc:
            if assistant is mock:
                raise
            logger.warning("action=createThread degraded=mock reason=%s", exc)
            assistant = mock
            reply = mock.create_thread(request.message, request.messages or [])

        store.ensure_session(reply.thread_id, mock=assistant.mock)
        if request.message:
            store.add_message(reply.thread_id, "user", request.message)
        if reply.message:
            store.add_message(reply.thread_id, "assistant", reply.message)
        return ChatResponse(
            success=True,
            thread_id=reply.thread_id,
            message=strip_payload(reply.message) if reply.message else None,
        )

    def _send_message(request: ChatRequest) -> ChatResponse:
        if not request.thread_id or not request.message:
            raise InvalidRequestError("Thread ID and message are required")
        assistant = select_assistant(request.thread_id)
        reply = assistant.send_message(request.thread_id, request.message)
        store.add_message(request.thread_id, "user", request.message)
        store.add_message(request.thread_id, "assistant", reply)
        ready = is_generating_recommendations(reply) or find_payload_span(reply) is not None
        return ChatResponse(success=True, message=strip_payload(reply), recommendations_ready=ready)

    def _generate_recommendations(request: ChatRequest) -> ChatResponse:
        if not request.thread_id:
            raise InvalidRequestError("Thread ID is required")
        history: List[ChatMessage] = list(request.messages or [])
        if not history:
            history = [
                ChatMessage(role=stored.role, content=stored.content)
                for stored in store.get_messages(request.thread_id)
                if stored.role in ("user", "assistant", "system")
            ]
        recommendations = select_assistant(request.thread_id).resolve_recommendations(request.thread_id, history)
        store.set_recommendations(request.thread_id, recommendations)
        return ChatResponse(success=True, recommendations=recommendations)

    @app.post(EMAIL_PATH, response_model=EmailResponse, response_model_exclude_none=True)
    def email(request: EmailRequest) -> EmailResponse:
        """Purpose: Hand a validated shopping list to the email collaborator.
        Inputs/Outputs: Input is EmailRequest; output is EmailResponse.
        Side Effects / State: Whatever the injected mailer does (the default only logs).
        Dependencies: Uses the mailer's send.
        Failure Modes: InvalidRequestError -> 400 with {success, message}.
        Testing Notes: Missing affiliate links are filled before sending.
        """
        return email_sender.send(request)

    @app.get("/api/test-connection", response_model=ConnectionReport)
    def test_connection() -> ConnectionReport:
        report = ConnectionReport(
            success=False,
            has_api_key=bool(settings.openai_api_key),
            assistant_id=settings.assistant_id,
        )
        if client is None:
            report.error = "Assistant client is not configured"
            return report
        try:
            report.assistant = client.retrieve_assistant()
            report.success = True
        except UpstreamUnavailable as exc:
            report.error = str(exc)
        return report

    @app.get("/api/sessions", response_model=List[SessionSummary])
    def list_sessions() -> List[SessionSummary]:
        return store.list_sessions()

    @app.get("/api/sessions/{thread_id}")
    def get_session(thread_id: str) -> dict:
        # Unknown threads return an empty transcript; the registry is only a cache.
        recommendations = store.get_recommendations(thread_id)
        return {
            "threadId": thread_id,
            "messages": [message.model_dump() for message in store.get_messages(thread_id)],
            "recommendations": recommendations.model_dump() if recommendations else None,
        }

    return app


def _error_response(request: Request, status_code: int, detail: str) -> JSONResponse:
    # The email endpoint reports failures under "message"; chat uses "error".
    key = "message" if request.url.path == EMAIL_PATH else "error"
    return JSONResponse(status_code=status_code, content={"success": False, key: detail})


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8080")))
