"""Recommendation pipeline: submission, run polling, extraction, and fallback.

Role:
    Owns the live conversation flow against the assistant job service. Every HTTP
    action delegates here (or to the mock assistant with the same interface).

Recommendation steps (run in order by StepRunner):
    request:        append the recommendation prompt and start a run.
    poll:           drive the run to a terminal state within the polling bounds.
    extract:        scan assistant messages newest-first for an embedded payload.
    attach_links:   fill affiliate_url on every extracted item lacking one.
    fallback:       always runs; substitutes the static catalog when nothing was
                    extracted or an upstream step failed.

Error policy:
    Upstream failures during recommendation generation are recorded on the context
    and absorbed by the fallback step. Plain conversation turns (create_thread,
    send_message) let upstream failures propagate, since no substitute reply exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .affiliate import attach_affiliate_links
from .assistant_client import AssistantsClient, RunHandle, ThreadMessage
from .catalog import FallbackCatalog
from .errors import AssistantError, ExtractionNotFound
from .extraction import extract_recommendations
from .models import ChatMessage, Recommendations
from .prompt_loader import load_prompt, render_prompt
from .run_poller import RunPoller
from .step_runner import PipelineStep, StepRunner
from .utils import preview

logger = logging.getLogger("diyassist.pipeline")

NO_RESPONSE_TEXT = "I don't have a response at this time."
PROJECT_NOTES_LIMIT = 3


@dataclass
class ThreadReply:
    """Result of opening a conversation: the thread id and the first reply, if any."""
    thread_id: str
    message: Optional[str] = None


@dataclass
class RecommendationContext:
    """Mutable context passed through each recommendation step."""
    thread_id: str
    history: List[ChatMessage] = field(default_factory=list)
    run: Optional[RunHandle] = None
    messages: List[ThreadMessage] = field(default_factory=list)
    recommendations: Optional[Recommendations] = None
    source: str = ""
    error: Optional[AssistantError] = None


class RecommendationAssistant:
    def __init__(
        self,
        client: AssistantsClient,
        poller: RunPoller,
        catalog: FallbackCatalog,
        prompts_dir: Path,
        affiliate_tag: str,
        search_url: str,
    ) -> None:
        """Purpose: Wire the job client, poller, and catalog into the step runner.
        Inputs/Outputs: Inputs are collaborators and link settings; no return value.
        Side Effects / State: Constructs a StepRunner with ordered steps.
        Dependencies: Uses StepRunner/PipelineStep and the step methods below.
        Failure Modes: None at init.
        Testing Notes: Build with a fake client and a fake-clock poller.
        """
        self._client = client
        self._poller = poller
        self._catalog = catalog
        self._prompts_dir = prompts_dir
        self._affiliate_tag = affiliate_tag
        self._search_url = search_url
        self._runner: StepRunner[RecommendationContext] = StepRunner(
            steps=[
                PipelineStep("request", self._step_request),
                PipelineStep("poll", self._step_poll, skip_if=_has_error),
                PipelineStep("extract", self._step_extract, skip_if=_has_error),
                PipelineStep("attach_links", self._step_attach_links, skip_if=_nothing_extracted),
                PipelineStep("fallback", self._step_fallback, always_run=True),
            ]
        )

    @property
    def mock(self) -> bool:
        return False

    def submit(
        self,
        thread_id: str,
        message: Optional[str] = None,
        prior_system_context: Optional[str] = None,
    ) -> RunHandle:
        """Purpose: Submit a turn to the thread and start the run that answers it.
        Inputs/Outputs: Inputs are thread_id, an optional message, and optional priming
            context; returns the RunHandle of the last run started.
        Side Effects / State: Appends messages and starts runs on the remote thread. A
            priming context is appended and its run driven to completion before the
            primary message is appended.
        Dependencies: Uses AssistantsClient and RunPoller.
        Failure Modes: UpstreamUnavailable from the client; UpstreamRunFailed or
            UpstreamTimeout if the priming run does not complete; ValueError when
            there is nothing to submit.
        Testing Notes: With both inputs, the fake client records priming run completion
            before the user message is appended.
        """
        if not message and not prior_system_context:
            raise ValueError("submit requires a message or a prior system context")

        handle: Optional[RunHandle] = None
        if prior_system_context:
            priming = render_prompt(self._prompts_dir / "system_priming.txt", context=prior_system_context)
            self._client.add_message(thread_id, "user", priming)
            priming_run = self._client.start_run(thread_id)
            handle = self._poller.wait(thread_id, priming_run.run_id)
            logger.info("thread=%s step=priming run=%s status=%s", thread_id, handle.run_id, handle.status)

        if message:
            self._client.add_message(thread_id, "user", message)
            handle = self._client.start_run(thread_id)
        assert handle is not None
        return handle

    def create_thread(self, message: Optional[str] = None, history: Optional[Sequence[ChatMessage]] = None) -> ThreadReply:
        """Purpose: Open a thread, optionally prime it and answer a first message.
        Inputs/Outputs: Inputs are an optional first message and optional history whose
            first system entry primes the assistant; returns ThreadReply.
        Side Effects / State: Creates a remote thread and runs.
        Dependencies: Uses submit, RunPoller.wait, and _latest_assistant_text.
        Failure Modes: Upstream errors propagate to the HTTP layer.
        Testing Notes: Without message or history only create_thread is called.
        """
        thread_id = self._client.create_thread()
        system_context = _first_system_content(history or [])
        if not message and not system_context:
            return ThreadReply(thread_id=thread_id)

        logger.info("thread=%s action=create_thread message=%s", thread_id, preview(message or ""))
        handle = self.submit(thread_id, message=message, prior_system_context=system_context)
        if not message:
            return ThreadReply(thread_id=thread_id)
        self._poller.wait(thread_id, handle.run_id)
        return ThreadReply(thread_id=thread_id, message=self._latest_assistant_text(thread_id))

    def send_message(self, thread_id: str, message: str) -> str:
        logger.info("thread=%s action=send_message message=%s", thread_id, preview(message))
        handle = self.submit(thread_id, message=message)
        self._poller.wait(thread_id, handle.run_id)
        return self._latest_assistant_text(thread_id)

    def resolve_recommendations(
        self, thread_id: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> Recommendations:
        """Purpose: Produce recommendations for a thread; never raises upstream errors.
        Inputs/Outputs: Inputs are thread_id and optional conversation history; returns
            Recommendations with every affiliate_url populated.
        Side Effects / State: Remote message append and run; logs the chosen source.
        Dependencies: Uses StepRunner over the recommendation steps.
        Failure Modes: Upstream and extraction failures resolve to the fallback catalog.
        Testing Notes: A client that fails at add_message yields the catalog.
        """
        context = RecommendationContext(thread_id=thread_id, history=list(history or []))
        self._runner.run(context)
        logger.info(
            "thread=%s action=recommendations source=%s materials=%d tools=%d",
            thread_id,
            context.source,
            len(context.recommendations.materials),
            len(context.recommendations.tools),
        )
        return context.recommendations

    def _step_request(self, context: RecommendationContext) -> None:
        prompt = load_prompt(self._prompts_dir / "recommendation_request.txt")
        notes = _project_notes(context.history)
        if notes:
            prompt = f"{prompt}\n\nProject notes: {notes}"
        try:
            context.run = self.submit(context.thread_id, message=prompt)
        except AssistantError as exc:
            context.error = exc

    def _step_poll(self, context: RecommendationContext) -> None:
        try:
            context.run = self._poller.wait(context.thread_id, context.run.run_id)
        except AssistantError as exc:
            context.error = exc

    def _step_extract(self, context: RecommendationContext) -> None:
        try:
            context.messages = self._client.list_messages(context.thread_id)
            context.recommendations = _first_payload(context.messages)
            context.source = "assistant"
        except AssistantError as exc:
            context.error = exc

    def _step_attach_links(self, context: RecommendationContext) -> None:
        context.recommendations = attach_affiliate_links(
            context.recommendations, self._affiliate_tag, self._search_url
        )

    def _step_fallback(self, context: RecommendationContext) -> None:
        if context.recommendations is not None:
            return
        reason = context.error.__class__.__name__ if context.error else "none"
        logger.warning("thread=%s step=fallback reason=%s detail=%s", context.thread_id, reason, context.error)
        context.recommendations = self._catalog.recommendations()
        context.source = "fallback"

    def _latest_assistant_text(self, thread_id: str) -> str:
        for message in self._client.list_messages(thread_id):
            if message.role == "assistant" and message.content:
                logger.info("thread=%s reply=%s", thread_id, preview(message.content))
                return message.content
        logger.warning("thread=%s reply=none", thread_id)
        return NO_RESPONSE_TEXT


def _first_payload(messages: Sequence[ThreadMessage]) -> Recommendations:
    """Return the payload from the newest assistant message that carries one."""
    for message in messages:
        if message.role != "assistant":
            continue
        found = extract_recommendations(message.content)
        if found is not None:
            return found
    raise ExtractionNotFound("no assistant message contained a materials/tools payload")


def _first_system_content(history: Sequence[ChatMessage]) -> Optional[str]:
    for entry in history:
        if entry.role == "system" and entry.content.strip():
            return entry.content.strip()
    return None


def _project_notes(history: Sequence[ChatMessage]) -> str:
    user_turns = [entry.content.strip() for entry in history if entry.role == "user" and entry.content.strip()]
    return " | ".join(user_turns[-PROJECT_NOTES_LIMIT:])


def _has_error(context: RecommendationContext) -> bool:
    return context.error is not None


def _nothing_extracted(context: RecommendationContext) -> bool:
    return context.recommendations is None
