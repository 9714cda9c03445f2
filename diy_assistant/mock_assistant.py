from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence, Tuple

from .catalog import FallbackCatalog
from .models import ChatMessage, Recommendations
from .pipeline import ThreadReply
from .utils import normalize_text, preview

logger = logging.getLogger("diyassist.mock")

MOCK_THREAD_PREFIX = "mock_thread_"

GREETING = (
    "Hello! Could you please tell me which area of your home you are working on? "
    "(e.g., bathroom, kitchen, living room, etc.)"
)
GENERIC_REPLY = (
    "Thanks for sharing those details. Can you tell me more about the specific materials "
    "you're planning to use or the main challenge you're facing?"
)

# First matching row wins; order matters for messages naming several areas.
KEYWORD_REPLIES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (
        ("bathroom",),
        "For a bathroom project, you'll typically need waterproof materials and proper ventilation. "
        "What specific part are you working on - is it tile work, plumbing, or something else?",
    ),
    (
        ("kitchen",),
        "Kitchen projects can be complex! Are you renovating cabinets, countertops, backsplash, or something else?",
    ),
    (
        ("living room", "bedroom"),
        "Great! For living spaces, are you focusing on walls, flooring, or built-in features?",
    ),
    (
        ("wall", "paint"),
        "Wall projects often require proper preparation. Are you looking to patch, paint, or add a feature "
        "like wainscoting?",
    ),
    (
        ("floor", "tile"),
        "Flooring projects need careful planning. What type of flooring material are you considering?",
    ),
    (
        ("thank",),
        "I'm now generating your personalized project list based on our conversation. "
        "This will include the materials and tools you'll need.",
    ),
)


def is_mock_thread(thread_id: Optional[str]) -> bool:
    return bool(thread_id) and thread_id.startswith(MOCK_THREAD_PREFIX)


def keyword_reply(message: str) -> str:
    """Pick the canned reply for the first keyword found in the message."""
    normalized = normalize_text(message)
    for keywords, reply in KEYWORD_REPLIES:
        if any(keyword in normalized for keyword in keywords):
            return reply
    return GENERIC_REPLY


class MockAssistant:
    """Credential-free stand-in with the same interface as RecommendationAssistant."""

    def __init__(self, catalog: FallbackCatalog, clock: Callable[[], float] = time.time) -> None:
        self._catalog = catalog
        self._clock = clock

    @property
    def mock(self) -> bool:
        return True

    def create_thread(self, message: Optional[str] = None, history: Optional[Sequence[ChatMessage]] = None) -> ThreadReply:
        thread_id = f"{MOCK_THREAD_PREFIX}{int(self._clock() * 1000)}"
        reply = keyword_reply(message) if message else GREETING
        logger.info("thread=%s action=create_thread mode=mock message=%s", thread_id, preview(message or ""))
        return ThreadReply(thread_id=thread_id, message=reply)

    def send_message(self, thread_id: str, message: str) -> str:
        logger.info("thread=%s action=send_message mode=mock message=%s", thread_id, preview(message))
        return keyword_reply(message)

    def resolve_recommendations(
        self, thread_id: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> Recommendations:
        # Mock mode never attempts extraction.
        logger.info("thread=%s action=recommendations mode=mock source=fallback", thread_id)
        return self._catalog.recommendations()
