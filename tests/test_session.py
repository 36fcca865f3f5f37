# ============================================================================
#  File: test_session.py
#  Purpose: End-to-end reporting flow on the background loop with a fake
#           Discord client
# ============================================================================
# SECTION 1: Imports & Helpers
# ============================================================================
#
import time

from reporting.config_manager import ReportingSettings
from reporting.progress import Outcome
from reporting.run_metadata import RunMetadata, RunMetadataStore
from reporting.session import ReportingSession

META = RunMetadata(thread_id="t1", channel_id="c1", header_message_id="h1", suite_label="Suite: LOCAL | all")


class FakeRestClient:

    def __init__(self):
        self.posts = []
        self.edits = []
        self.closed = 0

    async def post_to_thread(self, thread_id, content, attachment=None):
        self.posts.append((thread_id, content, attachment))
        return True

    async def edit_message(self, channel_id, message_id, content, embeds=None):
        self.edits.append((content, embeds))
        return True

    async def aclose(self):
        self.closed += 1


def make_settings(tmp_path, **overrides):
    values = dict(
        discord_bot_token="token",
        discord_channel_id="c1",
        run_meta_path=str(tmp_path / ".discord-run.json"),
        flush_delay=0.01,
        retry_delay=0.01,
        drain_timeout=1.0,
    )
    values.update(overrides)
    return ReportingSettings(**values)
#
# ============================================================================
# SECTION 2: Tests
# ============================================================================
# Method 2.1: test_full_run_posts_failures_and_final_summary
# ============================================================================
#
def test_full_run_posts_failures_and_final_summary(tmp_path) -> None:
    settings = make_settings(tmp_path, log_passed=True)
    RunMetadataStore(settings.run_meta_path).write(META)
    client = FakeRestClient()
    session = ReportingSession(settings, is_controller=True, rest_client=client).start()

    session.start_progress(2)
    ctx = session.context
    ctx.set_current_test("api/tests/test_a.py::test_a", "test_a")
    ctx.report_api_failure("api/tests/test_a.py::test_a", "test_a", "Error: boom\nExpected: 1\nReceived: 2")
    ctx.report_api_failure("api/tests/test_a.py::test_a", "test_a", "Error: again")
    session.record_outcome(Outcome.FAILED)
    ctx.set_current_test("api/tests/test_b.py::test_b", "test_b")
    ctx.mark_passed("fine")
    session.record_outcome(Outcome.PASSED)

    session.shutdown(report_url="https://reports/run-1")

    assert [p[1] for p in client.posts] == [
        "❌ **test_a**\n```\nError: boom\nExpected: 1\nReceived: 2\n```",
        "✅ test_b\nReason: fine",
    ]
    assert all(p[0] == "t1" for p in client.posts)
    final_content, embeds = client.edits[-1]
    assert "Tests completed ✅ 100% [2/2]" in final_content
    assert "❌ Failed: 1" in final_content
    assert embeds == [{"description": "🔗 [HTML report is here](https://reports/run-1)"}]
    assert client.closed >= 1
    assert not session.loop.running


def test_messages_wait_for_metadata_published_later(tmp_path) -> None:
    settings = make_settings(tmp_path)
    client = FakeRestClient()
    session = ReportingSession(settings, is_controller=False, rest_client=client).start()

    session.context.report_api_failure("n1", "early", "Error: before setup finished")
    time.sleep(0.05)
    assert client.posts == []

    RunMetadataStore(settings.run_meta_path).write(META)
    session.shutdown()

    assert [p[1].splitlines()[0] for p in client.posts] == ["❌ **early**"]
    assert session.tracker is None
    assert client.edits == []


def test_shutdown_is_bounded_without_metadata(tmp_path) -> None:
    settings = make_settings(tmp_path, drain_timeout=0.1)
    client = FakeRestClient()
    session = ReportingSession(settings, is_controller=False, rest_client=client).start()
    session.context.report_ui_failure("n1", "lost", error_text="Error: x")

    started = time.monotonic()
    session.shutdown()

    assert time.monotonic() - started < 3
    assert client.posts == []
    assert client.closed == 1


def test_shutdown_runs_once(tmp_path) -> None:
    client = FakeRestClient()
    session = ReportingSession(make_settings(tmp_path), is_controller=False, rest_client=client).start()

    session.shutdown()
    session.shutdown()

    assert client.closed == 1


def test_garbage_metadata_file_does_not_break_shutdown(tmp_path) -> None:
    settings = make_settings(tmp_path, drain_timeout=0.1)
    (tmp_path / ".discord-run.json").write_bytes(b"\xff\xfe{bad")
    client = FakeRestClient()
    session = ReportingSession(settings, is_controller=True, rest_client=client).start()
    session.start_progress(1)
    session.context.report_api_failure("n1", "t", "Error: x")
    session.record_outcome(Outcome.FAILED)

    session.shutdown()

    assert client.posts == []
    assert client.edits == []
    assert not session.loop.running


def test_unexpected_shutdown_error_is_logged_not_raised(tmp_path) -> None:
    class BrokenCloseClient(FakeRestClient):
        async def aclose(self):
            raise ValueError("connection pool corrupted")

    RunMetadataStore(tmp_path / ".discord-run.json").write(META)
    client = BrokenCloseClient()
    session = ReportingSession(make_settings(tmp_path), is_controller=False, rest_client=client).start()
    session.context.report_api_failure("n1", "t", "Error: x")

    session.shutdown()

    assert len(client.posts) == 1
    assert not session.loop.running
#
# ============================================================================
# Method 2.2: disabled reporting
# ============================================================================
#
def test_disabled_session_makes_no_network_objects(tmp_path) -> None:
    settings = ReportingSettings(run_meta_path=str(tmp_path / ".discord-run.json"))
    session = ReportingSession(settings).start()

    session.start_progress(3)
    session.context.set_current_test("n1", "t")
    assert not session.context.mark_failed("reason")
    session.context.report_ui_failure("n1", "t", error_text="Error: x")
    session.record_outcome(Outcome.FAILED)
    session.shutdown()

    assert not session.enabled
    assert session.client is None
    assert session.loop is None
    assert session.queue is None
    assert session.tracker is None


def test_disabled_session_logs_once(tmp_path) -> None:
    from loguru import logger

    messages = []
    sink = logger.add(messages.append, level="INFO", format="{message}")
    try:
        ReportingSession(ReportingSettings(run_meta_path=str(tmp_path / "m.json")))
    finally:
        logger.remove(sink)

    assert len([m for m in messages if "Discord reporting disabled" in m]) == 1
