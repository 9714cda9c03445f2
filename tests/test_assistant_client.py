from dataclasses import replace
from types import SimpleNamespace

import openai
import pytest

from diy_assistant.assistant_client import AssistantsClient
from diy_assistant.errors import UpstreamUnavailable


class StubMessages:
    def __init__(self) -> None:
        self.created = []
        self.listed = []

    def create(self, thread_id, role, content):
        self.created.append((thread_id, role, content))

    def list(self, thread_id, order):
        self.listed.append((thread_id, order))
        image = SimpleNamespace(type="image_file")
        text = SimpleNamespace(type="text", text=SimpleNamespace(value="Use cement board."))
        return SimpleNamespace(
            data=[
                SimpleNamespace(role="assistant", content=[image, text], created_at=20),
                SimpleNamespace(role="user", content=[], created_at=10),
            ]
        )


class StubRuns:
    def __init__(self) -> None:
        self.retrieved = []

    def create(self, thread_id, assistant_id):
        return SimpleNamespace(id="run_1", status="queued")

    def retrieve(self, run_id, thread_id):
        self.retrieved.append((run_id, thread_id))
        return SimpleNamespace(status="in_progress")


class StubThreads:
    def __init__(self) -> None:
        self.messages = StubMessages()
        self.runs = StubRuns()

    def create(self):
        return SimpleNamespace(id="thread_1")


class FailingThreads(StubThreads):
    def create(self):
        raise openai.OpenAIError("boom")


def make_sdk(threads=None):
    assistants = SimpleNamespace(
        retrieve=lambda assistant_id: SimpleNamespace(id=assistant_id, name="DIY Helper", model="gpt-4o")
    )
    return SimpleNamespace(beta=SimpleNamespace(threads=threads or StubThreads(), assistants=assistants))


def test_thread_and_run_calls(settings):
    sdk = make_sdk()
    client = AssistantsClient(settings, client=sdk)

    assert client.create_thread() == "thread_1"
    client.add_message("thread_1", "user", "Tiling a shower")
    handle = client.start_run("thread_1")
    status = client.get_run_status("thread_1", handle.run_id)

    assert sdk.beta.threads.messages.created == [("thread_1", "user", "Tiling a shower")]
    assert (handle.run_id, handle.status) == ("run_1", "queued")
    assert status == "in_progress"
    assert sdk.beta.threads.runs.retrieved == [("run_1", "thread_1")]


def test_list_messages_newest_first_text_only(settings):
    sdk = make_sdk()
    client = AssistantsClient(settings, client=sdk)

    messages = client.list_messages("thread_1")

    assert sdk.beta.threads.messages.listed == [("thread_1", "desc")]
    assert [(m.role, m.content) for m in messages] == [("assistant", "Use cement board."), ("user", "")]


def test_sdk_errors_become_upstream_unavailable(settings):
    client = AssistantsClient(settings, client=make_sdk(FailingThreads()))

    with pytest.raises(UpstreamUnavailable, match="create_thread failed"):
        client.create_thread()


def test_system_role_is_rejected(settings):
    client = AssistantsClient(settings, client=make_sdk())

    with pytest.raises(ValueError):
        client.add_message("thread_1", "system", "priming")


def test_missing_credentials(settings):
    with pytest.raises(ValueError):
        AssistantsClient(replace(settings, openai_api_key=""))
    with pytest.raises(ValueError):
        AssistantsClient(replace(settings, assistant_id=""), client=make_sdk())


def test_retrieve_assistant(settings):
    client = AssistantsClient(settings, client=make_sdk())

    assert client.retrieve_assistant() == {"id": "asst_test", "name": "DIY Helper", "model": "gpt-4o"}
