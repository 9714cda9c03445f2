"""Pytest configuration and shared fixtures."""

import os
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient


# Keep the module-level app in mock mode regardless of the developer shell.
# These must be set before diy_assistant.app is imported.
os.environ["OPENAI_API_KEY"] = ""
os.environ["FALLBACK_CATALOG_PATH"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")


from diy_assistant.app import create_app  # noqa: E402
from diy_assistant.assistant_client import RunHandle, ThreadMessage  # noqa: E402
from diy_assistant.catalog import FallbackCatalog  # noqa: E402
from diy_assistant.config import BASE_DIR, Settings  # noqa: E402
from diy_assistant.errors import UpstreamUnavailable  # noqa: E402
from diy_assistant.pipeline import RecommendationAssistant  # noqa: E402
from diy_assistant.run_poller import RunPoller  # noqa: E402


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeJobService:
    """Scripted stand-in for AssistantsClient.

    Each started run consumes the next status script from ``run_scripts`` (default
    ``["completed"]``). When a run first reports ``completed`` the next entry of
    ``replies`` is appended to the thread as an assistant message.
    """

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.messages: Dict[str, List[ThreadMessage]] = {}
        self.run_scripts: List[List[str]] = []
        self.replies: List[str] = []
        self.fail_on: set = set()
        self.status_checks = 0
        self._runs: Dict[str, List[str]] = {}
        self._completed: set = set()
        self._thread_count = 0

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise UpstreamUnavailable(f"{operation} failed: connection refused")

    def create_thread(self) -> str:
        self._maybe_fail("create_thread")
        self._thread_count += 1
        thread_id = f"thread_{self._thread_count}"
        self.messages[thread_id] = []
        self.calls.append(("create_thread", thread_id))
        return thread_id

    def add_message(self, thread_id: str, role: str, content: str) -> None:
        self._maybe_fail("add_message")
        self.calls.append(("add_message", thread_id, role, content))
        self.messages.setdefault(thread_id, []).append(ThreadMessage(role=role, content=content))

    def start_run(self, thread_id: str) -> RunHandle:
        self._maybe_fail("start_run")
        run_id = f"run_{len(self._runs) + 1}"
        script = self.run_scripts.pop(0) if self.run_scripts else ["completed"]
        self._runs[run_id] = list(script)
        self.calls.append(("start_run", thread_id, run_id))
        return RunHandle(thread_id=thread_id, run_id=run_id, status="queued")

    def get_run_status(self, thread_id: str, run_id: str) -> str:
        self._maybe_fail("get_run_status")
        self.status_checks += 1
        script = self._runs[run_id]
        status = script.pop(0) if len(script) > 1 else script[0]
        if status == "completed" and run_id not in self._completed:
            self._completed.add(run_id)
            self.calls.append(("run_completed", thread_id, run_id))
            if self.replies:
                self.messages[thread_id].append(ThreadMessage(role="assistant", content=self.replies.pop(0)))
        return status

    def list_messages(self, thread_id: str) -> List[ThreadMessage]:
        self._maybe_fail("list_messages")
        return list(reversed(self.messages.get(thread_id, [])))

    def retrieve_assistant(self) -> Dict[str, Optional[str]]:
        self._maybe_fail("retrieve_assistant")
        return {"id": "asst_test", "name": "DIY Helper", "model": "gpt-4o"}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="sk-test",
        assistant_id="asst_test",
        affiliate_tag="aiconstructio-20",
        marketplace_search_url="https://www.amazon.com/s",
        poll_interval_s=1.0,
        poll_max_attempts=15,
        poll_timeout_s=20.0,
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        fallback_catalog_path=None,
        max_sessions=50,
    )


@pytest.fixture
def mock_settings(settings: Settings) -> Settings:
    from dataclasses import replace

    return replace(settings, openai_api_key="")


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def job_service() -> FakeJobService:
    return FakeJobService()


@pytest.fixture
def catalog() -> FallbackCatalog:
    return FallbackCatalog()


@pytest.fixture
def poller(job_service: FakeJobService, fake_clock: FakeClock) -> RunPoller:
    return RunPoller(job_service.get_run_status, sleep=fake_clock.sleep, clock=fake_clock)


@pytest.fixture
def assistant(job_service, poller, catalog, settings) -> RecommendationAssistant:
    return RecommendationAssistant(
        client=job_service,
        poller=poller,
        catalog=catalog,
        prompts_dir=settings.prompts_dir,
        affiliate_tag=settings.affiliate_tag,
        search_url=settings.marketplace_search_url,
    )


@pytest.fixture
def live_client(settings, assistant, job_service) -> TestClient:
    app = create_app(settings, assistant=assistant, client=job_service)
    return TestClient(app)


@pytest.fixture
def mock_client(mock_settings) -> TestClient:
    return TestClient(create_app(mock_settings))
