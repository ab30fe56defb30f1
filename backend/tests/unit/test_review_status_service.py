from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from editorflow.core.config import WorkflowConfig
from editorflow.models.reviews import ReviewAction, ReviewAssignment, ReviewAssignmentStatus as Status
from editorflow.services.review_status_service import ReviewStatusEngine, format_due_date

TODAY = date(2026, 3, 10)


def _at(d: date, hour: int = 12) -> datetime:
    return datetime(d.year, d.month, d.day, hour, 0, tzinfo=timezone.utc)


def _engine(tz=timezone.utc) -> ReviewStatusEngine:
    return ReviewStatusEngine(config=WorkflowConfig(timezone=tz, log_events=False), today=lambda: TODAY)


def _assignment(**kwargs) -> ReviewAssignment:
    base = {
        "id": "ra-1",
        "submission_id": "sub-1",
        "reviewer_id": "rev-1",
        "date_response_due": _at(TODAY + timedelta(days=7)),
        "date_due": _at(TODAY + timedelta(days=28)),
    }
    base.update(kwargs)
    return ReviewAssignment(**base)


def test_fresh_invitation_awaits_response():
    assert _engine().derive_status(_assignment()) == Status.AWAITING_RESPONSE


def test_response_due_yesterday_is_response_overdue():
    ra = _assignment(date_response_due=_at(TODAY - timedelta(days=1)))
    assert _engine().derive_status(ra) == Status.RESPONSE_OVERDUE


def test_response_due_today_is_not_overdue():
    # 只比较日历日：今天早上到期仍不算逾期
    ra = _assignment(date_response_due=_at(TODAY, hour=0))
    assert _engine().derive_status(ra) == Status.AWAITING_RESPONSE


def test_accepted_with_review_due_tomorrow():
    ra = _assignment(date_confirmed=_at(TODAY - timedelta(days=2)), date_due=_at(TODAY + timedelta(days=1)))
    assert _engine().derive_status(ra) == Status.ACCEPTED


def test_accepted_with_review_due_passed_is_review_overdue():
    ra = _assignment(date_confirmed=_at(TODAY - timedelta(days=20)), date_due=_at(TODAY - timedelta(days=1)))
    assert _engine().derive_status(ra) == Status.REVIEW_OVERDUE


def test_accepted_ignores_passed_response_due():
    ra = _assignment(
        date_confirmed=_at(TODAY - timedelta(days=3)),
        date_response_due=_at(TODAY - timedelta(days=2)),
    )
    assert _engine().derive_status(ra) == Status.ACCEPTED


def test_accepted_without_review_due_stays_accepted():
    ra = _assignment(date_confirmed=_at(TODAY), date_due=None)
    assert _engine().derive_status(ra) == Status.ACCEPTED


def test_received_without_completion():
    ra = _assignment(
        date_confirmed=_at(TODAY - timedelta(days=20)),
        date_due=_at(TODAY - timedelta(days=5)),
        date_received=_at(TODAY - timedelta(days=6)),
    )
    assert _engine().derive_status(ra) == Status.RECEIVED


def test_completed_without_thanks_is_complete():
    ra = _assignment(date_confirmed=_at(TODAY), date_received=_at(TODAY), date_completed=_at(TODAY))
    assert _engine().derive_status(ra) == Status.COMPLETE


def test_thanked_beats_complete():
    ra = _assignment(date_completed=_at(TODAY), date_acknowledged=_at(TODAY))
    assert _engine().derive_status(ra) == Status.THANKED


@pytest.mark.parametrize(
    "flags, expected",
    [
        ({"cancelled": True, "declined": True, "date_acknowledged": _at(TODAY)}, Status.CANCELLED),
        ({"cancelled": True, "date_received": _at(TODAY)}, Status.CANCELLED),
        ({"declined": True, "date_acknowledged": _at(TODAY)}, Status.DECLINED),
        ({"declined": True, "date_response_due": _at(TODAY - timedelta(days=3))}, Status.DECLINED),
        ({"date_acknowledged": _at(TODAY), "date_completed": _at(TODAY)}, Status.THANKED),
        ({"date_completed": _at(TODAY), "date_received": _at(TODAY)}, Status.COMPLETE),
        ({"date_received": _at(TODAY), "date_response_due": _at(TODAY - timedelta(days=3))}, Status.RECEIVED),
    ],
)
def test_decision_order_priority(flags, expected):
    assert _engine().derive_status(_assignment(**flags)) == expected


def test_today_follows_configured_timezone():
    # 2026-03-10 23:30 UTC 在东京已经是 3 月 11 日
    ra = _assignment(date_response_due=datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc))
    engine = ReviewStatusEngine(
        config=WorkflowConfig(timezone=ZoneInfo("Asia/Tokyo"), log_events=False),
        today=lambda: date(2026, 3, 12),
    )
    assert engine.derive_status(ra) == Status.RESPONSE_OVERDUE
    assert engine.derive_status(ra, today=date(2026, 3, 11)) == Status.AWAITING_RESPONSE


def test_presented_due_date_uses_configured_timezone():
    ra = _assignment(date_response_due=datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc))
    engine = ReviewStatusEngine(
        config=WorkflowConfig(timezone=ZoneInfo("Asia/Tokyo"), log_events=False),
        today=lambda: date(2026, 3, 11),
    )

    view = engine.present(ra)
    assert view.status == Status.AWAITING_RESPONSE
    assert view.details == "Response due: 2026-03-11"

    overdue = engine.present(ra, today=date(2026, 3, 12))
    assert overdue.status == Status.RESPONSE_OVERDUE
    assert overdue.details == "Response due: 2026-03-11"


def test_custom_formatter_receives_zone_converted_datetime():
    seen = []

    def _fmt(value):
        seen.append(value)
        return "soon"

    due = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)
    engine = ReviewStatusEngine(
        config=WorkflowConfig(timezone=ZoneInfo("Asia/Tokyo"), log_events=False),
        today=lambda: date(2026, 3, 11),
        date_formatter=_fmt,
    )

    assert engine.present(_assignment(date_response_due=due)).details == "Response due: soon"
    assert seen == [due]
    assert seen[0].utcoffset() == timedelta(hours=9)


def test_present_awaiting_response_shows_response_due_date():
    view = _engine().present(_assignment(date_response_due=datetime(2026, 3, 17, 18, 45)))
    assert view.status == Status.AWAITING_RESPONSE
    assert view.state_label == "Request Sent"
    assert view.details == "Response due: 2026-03-17"
    assert view.state_class is None
    assert view.actions == []


def test_present_review_overdue_is_marked_overdue():
    ra = _assignment(date_confirmed=_at(TODAY - timedelta(days=20)), date_due=datetime(2026, 3, 1, 9, 0))
    view = _engine().present(ra)
    assert view.state_label == "Overdue"
    assert view.state_class == "overdue"
    assert view.details == "Review due: 2026-03-01"


def test_present_complete_with_recommendation():
    ra = _assignment(date_completed=_at(TODAY), recommendation="pending_revisions")
    view = _engine().present(ra)
    assert view.status == Status.COMPLETE
    assert view.state_label == "Complete"
    assert view.details == "Recommendation: Revisions Required"
    assert view.actions == [ReviewAction.READ_REVIEW_NOTES]


def test_present_complete_without_recommendation_degrades_to_label():
    view = _engine().present(_assignment(date_completed=_at(TODAY)))
    assert view.state_label == "Complete"
    assert view.details is None


def test_present_received_passes_free_text_recommendation_through():
    view = _engine().present(_assignment(date_received=_at(TODAY), recommendation="Minor edits only"))
    assert view.state_label == "Review Submitted"
    assert view.details == "Recommendation: Minor edits only"


@pytest.mark.parametrize(
    "flags, label, css",
    [
        ({"declined": True}, "Declined", "declined"),
        ({"cancelled": True}, "Cancelled", "cancelled"),
    ],
)
def test_present_terminal_refusals_have_no_details(flags, label, css):
    view = _engine().present(_assignment(**flags))
    assert (view.state_label, view.state_class, view.details, view.actions) == (label, css, None, [])


def test_missing_due_date_has_no_details():
    view = _engine().present(_assignment(date_response_due=None))
    assert view.status == Status.AWAITING_RESPONSE
    assert view.details is None


def test_review_notes_action_only_after_review_arrives():
    engine = _engine()
    with_notes = {s for s in Status if engine.available_actions(s)}
    assert with_notes == {Status.COMPLETE, Status.THANKED, Status.RECEIVED}


def test_format_due_date_truncates_to_calendar_date():
    assert format_due_date(datetime(2026, 1, 2, 23, 59, tzinfo=timezone.utc)) == "2026-01-02"
    assert format_due_date(date(2026, 1, 2)) == "2026-01-02"
    assert format_due_date(None) is None


def test_assignment_accepts_iso_rows():
    ra = ReviewAssignment.model_validate(
        {
            "id": "ra-9",
            "submission_id": "sub-1",
            "reviewer_id": "rev-2",
            "stage_id": 3,
            "date_response_due": "2026-03-01T00:00:00Z",
            "cancelled": False,
            "declined": False,
        }
    )
    assert _engine().derive_status(ra) == Status.RESPONSE_OVERDUE
