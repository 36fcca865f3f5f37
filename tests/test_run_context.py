# ============================================================================
#  File: test_run_context.py
#  Purpose: Pass/fail signals, failure de-dupe and message formats
# ============================================================================
#
import pytest

from reporting.error_handling import MisuseError
from reporting.run_context import (
    DEFAULT_FAILURE_REASON,
    SCREENSHOT_NOTICE,
    ReportingContext,
    StepResult,
    format_api_failure,
    format_message,
    timeout_reason,
)

NODE = "e2e/tests/test_samples.py::test_login"


@pytest.fixture
def posts():
    return []


@pytest.fixture
def context(posts):
    ctx = ReportingContext(log_passed=False, submit=posts.append, screenshot=lambda page, title: None)
    ctx.set_current_test(NODE, "test_login")
    return ctx


def test_format_message():
    assert format_message("✅", "title") == "✅ title"
    assert format_message("❌", "title", "broke") == "❌ title\nReason: broke"


def test_step_result_truthiness():
    assert StepResult.passed()
    failed = StepResult.failed("nope")
    assert not failed
    assert failed.reason == "nope"


def test_mark_failed_without_active_test_raises():
    ctx = ReportingContext(submit=[].append)
    with pytest.raises(MisuseError, match="without an active test"):
        ctx.mark_failed("reason")


@pytest.mark.parametrize("reason", ["", "   ", None])
def test_mark_failed_requires_reason(context, reason):
    with pytest.raises(MisuseError, match="non-empty reason"):
        context.mark_failed(reason)


def test_mark_failed_returns_failure_and_posts_nothing_yet(context, posts):
    result = context.mark_failed("Dashboard marker not visible.")

    assert not result
    assert result.reason == "[FAILED] test_login: Dashboard marker not visible."
    assert posts == []


def test_ui_failure_prefers_mark_failed_reason(context, posts):
    context.mark_failed("first reason")
    context.mark_failed("second reason")

    assert context.report_ui_failure(NODE, "test_login", page=object(), error_text="Error: other")
    message = posts[0]
    assert message.content == "❌ test_login\nReason: first reason"
    assert message.file_path is None
    assert message.extra_notice == SCREENSHOT_NOTICE


def test_ui_failure_reason_fallbacks(posts):
    ctx = ReportingContext(submit=posts.append)

    ctx.report_ui_failure("a", "A", error_text="TimeoutError: Timeout 15000ms exceeded.\nCall log:")
    ctx.report_ui_failure("b", "B", error_text="\x1b[31mAssertionError: assert 1 == 2\x1b[0m\nmore")
    ctx.report_ui_failure("c", "C", error_text=None)

    assert [m.content for m in posts] == [
        "❌ A\nReason: Test timed-out after 15s.",
        "❌ B\nReason: AssertionError: assert 1 == 2",
        f"❌ C\nReason: {DEFAULT_FAILURE_REASON}",
    ]


def test_ui_failure_attaches_screenshot(posts, tmp_path):
    shot = str(tmp_path / "shot.png")
    ctx = ReportingContext(submit=posts.append, screenshot=lambda page, title: shot)

    ctx.report_ui_failure(NODE, "test_login", page=object(), error_text="Error: boom")

    assert posts[0].file_path == shot
    assert posts[0].extra_notice is None


def test_failure_is_reported_once_per_node_id(context, posts):
    assert context.report_ui_failure(NODE, "test_login", error_text="Error: one")
    assert not context.report_ui_failure(NODE, "test_login", error_text="Error: two")
    assert not context.report_api_failure(NODE, "test_login", ["Error: three"])

    assert len(posts) == 1
    assert NODE in context.failed_ids


def test_same_title_different_node_ids_both_report(posts):
    ctx = ReportingContext(submit=posts.append)

    ctx.report_api_failure("api/tests/a.py::test_x", "test_x", "Error: a")
    ctx.report_api_failure("api/tests/b.py::test_x", "test_x", "Error: b")

    assert len(posts) == 2


def test_api_failure_block(posts):
    ctx = ReportingContext(submit=posts.append)

    ctx.report_api_failure(NODE, "test_register", [
        "AssertionError: API allowed duplicate registration\nassert not True",
    ])

    assert posts[0].content == (
        "❌ **test_register**\n"
        "```\n"
        "AssertionError: API allowed duplicate registration\n"
        "```"
    )


def test_api_failure_block_is_truncated():
    content = format_api_failure("t", "x" * 5000)
    snippet = content.split("```\n")[1].rstrip("`").rstrip("\n")
    assert len(snippet) == 1400


def test_mark_passed_respects_flag(posts):
    quiet = ReportingContext(log_passed=False, submit=posts.append)
    quiet.set_current_test(NODE, "quiet")
    quiet.mark_passed("fine")

    loud = ReportingContext(log_passed=True, submit=posts.append)
    loud.mark_passed("no active test")
    loud.set_current_test(NODE, "loud")
    assert loud.mark_passed("Successfully logged in")

    assert [m.content for m in posts] == ["✅ loud\nReason: Successfully logged in"]


def test_disabled_context_validates_but_sends_nothing():
    ctx = ReportingContext(log_passed=True, submit=None)
    ctx.set_current_test(NODE, "t")

    assert not ctx.enabled
    ctx.mark_passed()
    assert not ctx.mark_failed("reason")
    assert ctx.report_ui_failure(NODE, "t", error_text="Error: x")
    with pytest.raises(MisuseError):
        ctx.mark_failed("")


def test_new_test_clears_pending_reason(context, posts):
    context.mark_failed("stale")
    context.set_current_test("other::test", "other")

    context.report_ui_failure("other::test", "other", error_text="Error: fresh")

    assert posts[0].content == "❌ other\nReason: Error: fresh"


def test_timeout_reason():
    assert timeout_reason("Timeout 45000ms exceeded.") == "Test timed-out after 45s."
    assert timeout_reason("Timeout 200ms exceeded.") == "Test timed-out."
    assert timeout_reason("AssertionError") is None
    assert timeout_reason(None) is None
