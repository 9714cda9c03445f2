from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import openai
from openai import OpenAI

from .config import Settings
from .errors import UpstreamUnavailable

logger = logging.getLogger("diyassist.client")

MESSAGE_ROLES = ("user", "assistant")


@dataclass
class RunHandle:
    """One assistant run on a thread, as last observed."""
    thread_id: str
    run_id: str
    status: str


@dataclass
class ThreadMessage:
    """Text view of a thread message."""
    role: str
    content: str
    created_at: int = 0


class AssistantsClient:
    """Thin wrapper around the OpenAI Assistants thread/run API."""

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None) -> None:
        """Purpose: Configure the OpenAI SDK client for one assistant.
        Inputs/Outputs: Input is Settings and an optional prebuilt client; no return value.
        Side Effects / State: Creates an SDK client holding the API key.
        Dependencies: Uses openai.OpenAI and Settings from config.
        Failure Modes: Raises ValueError if the API key or assistant id is missing.
        Testing Notes: Pass a stub client to exercise error translation offline.
        """
        if not settings.openai_api_key and client is None:
            raise ValueError("OPENAI_API_KEY is required")
        if not settings.assistant_id:
            raise ValueError("OPENAI_ASSISTANT_ID is required")
        self._assistant_id = settings.assistant_id
        self._client = client or OpenAI(api_key=settings.openai_api_key)

    @property
    def assistant_id(self) -> str:
        return self._assistant_id

    def create_thread(self) -> str:
        with _upstream("create_thread"):
            thread = self._client.beta.threads.create()
        logger.info("thread=%s created", thread.id)
        return thread.id

    def add_message(self, thread_id: str, role: str, content: str) -> None:
        """Append a message; the provider only accepts user and assistant roles."""
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Unsupported message role: {role}")
        with _upstream("add_message"):
            self._client.beta.threads.messages.create(thread_id, role=role, content=content)

    def start_run(self, thread_id: str) -> RunHandle:
        with _upstream("start_run"):
            run = self._client.beta.threads.runs.create(thread_id=thread_id, assistant_id=self._assistant_id)
        logger.info("thread=%s run=%s status=%s started", thread_id, run.id, run.status)
        return RunHandle(thread_id=thread_id, run_id=run.id, status=run.status)

    def get_run_status(self, thread_id: str, run_id: str) -> str:
        with _upstream("get_run_status"):
            run = self._client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
        return run.status

    def list_messages(self, thread_id: str) -> List[ThreadMessage]:
        """Purpose: List thread messages newest-first as plain text.
        Inputs/Outputs: Input is thread_id; output is a list of ThreadMessage.
        Side Effects / State: One network call.
        Dependencies: Uses beta.threads.messages.list with order="desc".
        Failure Modes: SDK errors become UpstreamUnavailable. Messages without a text
            block are returned with empty content.
        Testing Notes: Stub the SDK page object with image and text blocks.
        """
        with _upstream("list_messages"):
            page = self._client.beta.threads.messages.list(thread_id, order="desc")
        messages: List[ThreadMessage] = []
        for message in page.data:
            messages.append(
                ThreadMessage(
                    role=message.role,
                    content=_first_text(message.content),
                    created_at=getattr(message, "created_at", 0) or 0,
                )
            )
        return messages

    def retrieve_assistant(self) -> Dict[str, Optional[str]]:
        with _upstream("retrieve_assistant"):
            assistant = self._client.beta.assistants.retrieve(self._assistant_id)
        return {"id": assistant.id, "name": assistant.name, "model": assistant.model}


def _first_text(blocks: list) -> str:
    # Only the first text block is used; image and file blocks are skipped.
    for block in blocks or []:
        if getattr(block, "type", "") == "text":
            return block.text.value or ""
    return ""


@contextmanager
def _upstream(operation: str) -> Iterator[None]:
    """Translate SDK failures into UpstreamUnavailable."""
    try:
        yield
    except openai.OpenAIError as exc:
        logger.warning("upstream operation=%s error=%s", operation, exc.__class__.__name__)
        raise UpstreamUnavailable(f"{operation} failed: {exc}") from exc
