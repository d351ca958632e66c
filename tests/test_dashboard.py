from datetime import timezone

import pytest

from dashboard import (
    NO_COMPLAINTS_FOUND,
    NO_COMPLAINTS_SUBMITTED,
    compute_counters,
    filter_complaints,
    format_date,
    render_admin,
    render_public,
    render_user,
    resolution_rate,
    sort_newest_first,
)


def complaint(cid, status="pending", category="Hostel", urgency="low",
              submitted="2026-10-01T09:00:00.000Z", **extra):
    return {
        "id": cid,
        "category": category,
        "location": "Block A",
        "description": f"Issue {cid}",
        "urgency": urgency,
        "status": status,
        "studentName": "Asha",
        "studentId": "CS-101",
        "submittedAt": submitted,
        **extra,
    }


def test_counters_for_two_pending_one_resolved():
    items = [complaint("a"), complaint("b"), complaint("c", status="resolved")]
    assert compute_counters(items) == {"total": 3, "resolved": 1, "pending": 2, "rate": 33}


def test_rate_is_zero_for_empty_list():
    assert compute_counters([]) == {"total": 0, "resolved": 0, "pending": 0, "rate": 0}


@pytest.mark.parametrize(
    "resolved,total,expected",
    [(0, 5, 0), (5, 5, 100), (1, 8, 13), (2, 3, 67), (1, 6, 17), (1, 200, 1), (1, 201, 0)],
)
def test_resolution_rate_rounds_halves_up(resolved, total, expected):
    assert resolution_rate(resolved, total) == expected


def test_resolution_rate_stays_in_bounds():
    for total in range(1, 40):
        for resolved in range(total + 1):
            assert 0 <= resolution_rate(resolved, total) <= 100


def test_status_all_returns_everything():
    items = [complaint("a"), complaint("b", status="resolved")]
    assert filter_complaints(items, "all") == items


def test_status_filter_keeps_only_matching():
    items = [complaint("a"), complaint("b", status="resolved"), complaint("c")]
    assert [c["id"] for c in filter_complaints(items, "pending")] == ["a", "c"]


def test_category_filter_is_independent_of_status():
    items = [
        complaint("a", category="Hostel"),
        complaint("b", category="Canteen"),
        complaint("c", category="Hostel", status="resolved"),
    ]
    assert [c["id"] for c in filter_complaints(items, category="Hostel")] == ["a", "c"]
    assert [c["id"] for c in filter_complaints(items, "resolved", "Hostel")] == ["c"]
    assert filter_complaints(items, "resolved", "Canteen") == []


def test_sort_newest_first():
    items = [
        complaint("old", submitted="2026-01-01T00:00:00.000Z"),
        complaint("new", submitted="2026-09-01T00:00:00.000Z"),
        complaint("mid", submitted="2026-05-01T00:00:00.000Z"),
    ]
    assert [c["id"] for c in sort_newest_first(items)] == ["new", "mid", "old"]


def test_format_date_public_and_detailed():
    value = "2026-10-09T14:05:00.000Z"
    assert format_date(value, tz=timezone.utc) == "Oct 9, 2026"
    assert format_date(value, with_time=True, tz=timezone.utc) == "Oct 9, 2026, 02:05 PM"
    assert format_date(None) == "Unknown date"


def test_public_render_counts_everything_but_shows_filtered():
    items = [complaint("a"), complaint("b", status="resolved")]
    rendered = render_public(items, "resolved")
    assert rendered.counters["total"] == 2
    assert [card["id"] for card in rendered.cards] == ["b"]
    assert "submitter_name" not in rendered.cards[0]
    assert rendered.cards[0]["can_resolve"] is False


def test_public_render_empty_state():
    rendered = render_public([complaint("a")], "resolved")
    assert rendered.cards == []
    assert rendered.empty_message == NO_COMPLAINTS_FOUND


def test_user_render_empty_state_when_nothing_submitted():
    rendered = render_user([])
    assert rendered.cards == []
    assert rendered.empty_message == NO_COMPLAINTS_SUBMITTED


def test_user_cards_show_submitter_but_no_resolve_action():
    card = render_user([complaint("a", urgency="critical")]).cards[0]
    assert card["submitter_name"] == "Asha"
    assert card["submitter_id"] == "CS-101"
    assert card["high_urgency"] is True
    assert card["can_resolve"] is False


@pytest.mark.parametrize("urgency,flagged", [("low", False), ("medium", False), ("high", True), ("critical", True)])
def test_high_urgency_flag(urgency, flagged):
    card = render_admin([complaint("a", urgency=urgency)]).cards[0]
    assert card["high_urgency"] is flagged


def test_admin_cards_offer_resolve_only_while_pending():
    rendered = render_admin([complaint("a"), complaint("b", status="resolved")])
    by_id = {card["id"]: card for card in rendered.cards}
    assert by_id["a"]["can_resolve"] is True
    assert by_id["a"]["status_style"] == "warning"
    assert by_id["b"]["can_resolve"] is False
    assert by_id["b"]["status_style"] == "success"


def test_admin_render_includes_user_count_when_known():
    assert render_admin([], user_count=7).counters["users"] == 7
    assert "users" not in render_admin([]).counters
