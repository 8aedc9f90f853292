import logging
import threading

import pytest
from pydantic import ValidationError

from cinegen.errors import (
    GenerationTimeoutError,
    MalformedResponseError,
    OperationCancelledError,
    PermanentUpstreamError,
)
from cinegen.models import GenerationTask, TaskStatus
from cinegen.services.client import GenerationClient, classify_status, clean_json_text

from conftest import PNG_BYTES, PNG_DATA_URL, FakeResponse

TASKS = "contents/generations/tasks"


def chat_reply(content):
    return FakeResponse(json_body={"choices": [{"message": {"content": content}}]})


@pytest.fixture
def client(settings, session, sleeps):
    return GenerationClient(settings, session=session, sleep=sleeps.append)


def test_submit_text_sends_json_mode_and_bearer(client, session):
    session.add("POST", "chat/completions", chat_reply('```json\n{"a": 1}\n```'))

    text = client.submit_text("Summarize", response_format="json_object")

    assert clean_json_text(text) == '{"a": 1}'
    method, url, kwargs = session.calls[0]
    assert url == "https://ark.test/api/v3/chat/completions"
    assert kwargs["json"]["response_format"] == {"type": "json_object"}
    assert kwargs["json"]["messages"] == [{"role": "user", "content": "Summarize"}]
    assert kwargs["headers"]["Authorization"] == "Bearer test-key-123456"


def test_http_429_is_retried_with_backoff(client, session, sleeps):
    session.add(
        "POST", "chat/completions",
        FakeResponse(429, json_body={"error": {"message": "slow down"}}),
        chat_reply("done"),
    )

    assert client.submit_text("hi") == "done"
    assert len(session.calls) == 2
    assert sleeps == [2.0]


def test_throttling_error_code_is_retried(client, session, sleeps):
    session.add(
        "POST", "chat/completions",
        FakeResponse(400, json_body={"error": {"code": "QuotaExceeded", "message": "quota"}}),
        chat_reply("done"),
    )

    assert client.submit_text("hi") == "done"
    assert sleeps == [2.0]


def test_other_errors_are_permanent(client, session, sleeps):
    session.add("POST", "chat/completions", FakeResponse(400, json_body={"error": {"message": "bad prompt"}}))

    with pytest.raises(PermanentUpstreamError, match="bad prompt") as excinfo:
        client.submit_text("hi")
    assert excinfo.value.status_code == 400
    assert not excinfo.value.rate_limited
    assert len(session.calls) == 1
    assert sleeps == []


def test_submit_image_explains_reference_order(client, session):
    session.add("POST", "images/generations", FakeResponse(json_body={"data": [{"b64_json": "aGVsbG8="}]}))

    image = client.submit_image("A dark alley", ["data:image/png;base64,c2NlbmU=", "data:image/png;base64,Y2hhcg=="])

    assert image == "data:image/png;base64,aGVsbG8="
    body = session.calls[0][2]["json"]
    assert "FIRST image provided is the Scene/Environment reference" in body["prompt"]
    assert '"A dark alley"' in body["prompt"]
    assert body["images"] == ["data:image/png;base64,c2NlbmU=", "data:image/png;base64,Y2hhcg=="]


def test_submit_image_without_references_keeps_prompt(client, session):
    session.add("POST", "images/generations", FakeResponse(json_body={"data": [{"url": PNG_DATA_URL}]}))

    assert client.submit_image("A dark alley") == PNG_DATA_URL
    body = session.calls[0][2]["json"]
    assert body["prompt"] == "A dark alley"
    assert "images" not in body


def test_submit_image_downloads_remote_urls(client, session):
    session.add("POST", "images/generations", FakeResponse(json_body={"data": [{"url": "https://cdn.test/img.jpg"}]}))
    session.add("GET", "cdn.test/img.jpg", FakeResponse(content=b"jpg", headers={"content-type": "image/jpeg"}))

    assert client.submit_image("x") == "data:image/jpeg;base64,anBn"
    download = session.calls_to("GET", "cdn.test")[0]
    assert "headers" not in download[2]


def test_submit_image_without_image_data_is_malformed(client, session):
    session.add("POST", "images/generations", FakeResponse(json_body={"data": []}))

    with pytest.raises(MalformedResponseError):
        client.submit_image("x")


def test_submit_video_builds_request_and_localizes_images(client, session):
    session.add("GET", "localhost:3001", FakeResponse(content=PNG_BYTES, headers={"content-type": "image/png"}))
    session.add("POST", TASKS, FakeResponse(json_body={"id": "task-9"}))

    task = client.submit_video(
        "Dolly in",
        start_image="http://localhost:3001/api/files/get/u/images/a.png",
        end_image="https://cdn.test/end.png",
    )

    assert task.task_id == "task-9"
    assert task.status == TaskStatus.PENDING
    body = session.calls_to("POST", TASKS)[0][2]["json"]
    assert body["content"][0] == {"type": "text", "text": "Dolly in"}
    assert body["content"][1] == {
        "type": "image_url",
        "image_url": {"url": PNG_DATA_URL},
        "role": "first_frame",
    }
    assert body["content"][2]["image_url"]["url"] == "https://cdn.test/end.png"
    assert body["content"][2]["role"] == "last_frame"
    assert body["duration"] == 4
    assert body["resolution"] == "720p"
    assert body["ratio"] == "16:9"


def test_submit_video_without_task_id_is_malformed(client, session):
    session.add("POST", TASKS, FakeResponse(json_body={"status": "ok"}))

    with pytest.raises(MalformedResponseError):
        client.submit_video("x")


def test_wait_for_video_polls_until_completed(client, session, sleeps):
    session.add(
        "GET", f"{TASKS}/t1",
        FakeResponse(json_body={"status": "pending"}),
        FakeResponse(json_body={"status": "running"}),
        FakeResponse(json_body={"status": "succeeded", "content": {"video_url": "https://v/1.mp4"}}),
    )
    task = GenerationTask(task_id="t1")

    assert client.wait_for_video(task) == "https://v/1.mp4"
    assert task.polls == 3
    assert task.status == TaskStatus.COMPLETED
    assert task.result_url == "https://v/1.mp4"
    assert sleeps == [5.0, 5.0, 5.0]


def test_wait_for_video_times_out(settings, session, sleeps):
    client = GenerationClient(
        settings.model_copy(update={"max_poll_attempts": 4}),
        session=session,
        sleep=sleeps.append,
    )
    session.add("GET", f"{TASKS}/t1", FakeResponse(json_body={"status": "pending"}))
    task = GenerationTask(task_id="t1")

    with pytest.raises(GenerationTimeoutError) as excinfo:
        client.wait_for_video(task)
    assert excinfo.value.task_id == "t1"
    assert excinfo.value.attempts == 4
    assert not isinstance(excinfo.value, PermanentUpstreamError)
    assert task.status == TaskStatus.TIMEOUT
    assert len(sleeps) == 4


def test_wait_for_video_failure_carries_upstream_message(client, session):
    session.add("GET", f"{TASKS}/t1", FakeResponse(json_body={"status": "failed", "error": {"message": "content policy"}}))
    task = GenerationTask(task_id="t1")

    with pytest.raises(PermanentUpstreamError, match="content policy"):
        client.wait_for_video(task)
    assert task.status == TaskStatus.FAILED
    assert task.error == "content policy"


def test_completed_without_url_is_malformed(client, session):
    session.add("GET", f"{TASKS}/t1", FakeResponse(json_body={"status": "completed"}))

    with pytest.raises(MalformedResponseError):
        client.wait_for_video(GenerationTask(task_id="t1"))


def test_unrecognized_status_keeps_polling_and_warns_once(settings, session, sleeps, caplog):
    client = GenerationClient(
        settings.model_copy(update={"max_poll_attempts": 6, "unknown_status_threshold": 3}),
        session=session,
        sleep=sleeps.append,
    )
    session.add("GET", f"{TASKS}/t1", FakeResponse(json_body={"status": "thinking"}))
    task = GenerationTask(task_id="t1")

    with caplog.at_level(logging.WARNING, logger="cinegen.services.client"):
        with pytest.raises(GenerationTimeoutError):
            client.wait_for_video(task)

    assert task.polls == 6
    assert task.unrecognized_status == "thinking"
    warnings = [r for r in caplog.records if "unrecognized status" in r.getMessage()]
    assert len(warnings) == 1


def test_cancel_stops_polling(client, session):
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(OperationCancelledError):
        client.wait_for_video(GenerationTask(task_id="t1"), cancel=cancel)
    assert session.calls == []


def test_generate_video_submits_then_waits(client, session):
    session.add("POST", TASKS, FakeResponse(json_body={"task_id": "t7"}))
    session.add("GET", f"{TASKS}/t7", FakeResponse(json_body={"state": "success", "video_url": "https://v/7.mp4"}))

    assert client.generate_video("Pan right", start_image=PNG_DATA_URL) == "https://v/7.mp4"


def test_download_uses_default_mime_for_generic_types(client, session):
    session.add("GET", "cdn.test/clip", FakeResponse(content=b"mp4", headers={"content-type": "binary/octet-stream"}))

    assert client.download("https://cdn.test/clip", default_mime="video/mp4") == "data:video/mp4;base64,bXA0"


def test_with_api_key_returns_new_client(client, session):
    session.add("POST", "chat/completions", chat_reply("ok"))

    other = client.with_api_key("other-key")
    other.submit_text("hi")
    client.submit_text("hi")

    assert client.settings.api_key == "test-key-123456"
    assert other.settings.api_key == "other-key"
    assert session.calls[0][2]["headers"]["Authorization"] == "Bearer other-key"
    assert session.calls[1][2]["headers"]["Authorization"] == "Bearer test-key-123456"


def test_settings_are_frozen(client):
    with pytest.raises(ValidationError):
        client.settings.api_key = "mutated"


def test_with_config_changes_one_setting(client):
    other = client.with_config(video_duration=8)
    assert other.settings.video_duration == 8
    assert client.settings.video_duration == 4


def test_missing_api_key_is_permanent(settings, session):
    client = GenerationClient(settings.with_api_key(""), session=session)
    with pytest.raises(PermanentUpstreamError, match="ARK_API_KEY"):
        client.submit_text("hi")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("completed", TaskStatus.COMPLETED),
        ("SUCCESS", TaskStatus.COMPLETED),
        ("succeeded", TaskStatus.COMPLETED),
        ("failed", TaskStatus.FAILED),
        ("error", TaskStatus.FAILED),
        ("pending", TaskStatus.PENDING),
        ("queued", TaskStatus.PENDING),
        ("processing", TaskStatus.PROCESSING),
        ("Running", TaskStatus.PROCESSING),
        ("cancelled-ish", None),
        (None, None),
        ("", None),
    ],
)
def test_classify_status(raw, expected):
    assert classify_status(raw) == expected


def test_clean_json_text():
    assert clean_json_text('```json\n[1, 2]\n```') == "[1, 2]"
    assert clean_json_text("```\n{}\n```") == "{}"
    assert clean_json_text("") == "{}"
    assert clean_json_text('  {"a": 1} ') == '{"a": 1}'
