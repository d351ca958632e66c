# dashboard.py
"""
Dashboard renderers.

Pure functions: a list of complaint records plus the current filter selection
go in, counters and card descriptions come out. The Tk layer only lays the
cards out; nothing here touches widgets or the network.
"""
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Iterable, List, Optional

from models import ALL, STATUS_PENDING, STATUS_RESOLVED, is_high_urgency, parse_iso

PUBLIC = "public"
USER = "user"
ADMIN = "admin"

NO_COMPLAINTS_FOUND = "No complaints found."
NO_COMPLAINTS_SUBMITTED = "No complaints submitted yet."

STATUS_STYLES = {STATUS_RESOLVED: "success", STATUS_PENDING: "warning"}


@dataclass
class Rendered:
    counters: dict
    cards: List[dict] = field(default_factory=list)
    empty_message: Optional[str] = None


def resolution_rate(resolved: int, total: int) -> int:
    """Percentage of resolved complaints, halves rounded up; 0 for an empty list."""
    if total <= 0:
        return 0
    # integer form of floor(resolved / total * 100 + 0.5)
    return (resolved * 200 + total) // (2 * total)


def compute_counters(complaints: Iterable[dict]) -> dict:
    complaints = list(complaints)
    total = len(complaints)
    resolved = sum(1 for c in complaints if c.get("status") == STATUS_RESOLVED)
    pending = sum(1 for c in complaints if c.get("status") == STATUS_PENDING)
    return {
        "total": total,
        "resolved": resolved,
        "pending": pending,
        "rate": resolution_rate(resolved, total),
    }


def filter_complaints(complaints: Iterable[dict], status: str = ALL,
                      category: str = ALL) -> List[dict]:
    result = list(complaints)
    if status and status != ALL:
        result = [c for c in result if c.get("status") == status]
    if category and category != ALL:
        result = [c for c in result if c.get("category") == category]
    return result


def sort_newest_first(complaints: Iterable[dict]) -> List[dict]:
    return sorted(complaints, key=lambda c: c.get("submittedAt") or "", reverse=True)


def format_date(value: Optional[str], with_time: bool = False,
                tz: Optional[tzinfo] = None) -> str:
    """'Oct 19, 2026' or 'Oct 19, 2026, 02:05 PM' in local time unless tz is given."""
    dt = parse_iso(value)
    if dt is None:
        return "Unknown date"
    dt = dt.astimezone(tz)
    text = f"{dt:%b} {dt.day}, {dt.year}"
    if with_time:
        text += f", {dt:%I:%M %p}"
    return text


def build_card(complaint: dict, view: str) -> dict:
    status = complaint.get("status", STATUS_PENDING)
    urgency = complaint.get("urgency", "")
    card = {
        "id": complaint.get("id"),
        "category": complaint.get("category", ""),
        "status": status,
        "status_style": STATUS_STYLES.get(status, "secondary"),
        "location": complaint.get("location", ""),
        "description": complaint.get("description", ""),
        "date": format_date(complaint.get("submittedAt"), with_time=view != PUBLIC),
        "urgency": urgency,
        "high_urgency": is_high_urgency(urgency),
        "can_resolve": view == ADMIN and status == STATUS_PENDING,
    }
    if view != PUBLIC:
        card["submitter_name"] = complaint.get("studentName", "")
        card["submitter_id"] = complaint.get("studentId", "")
    return card


def _render(complaints, view, status=ALL, category=ALL, empty_message=NO_COMPLAINTS_FOUND):
    complaints = list(complaints)
    counters = compute_counters(complaints)
    shown = sort_newest_first(filter_complaints(complaints, status, category))
    if not shown:
        return Rendered(counters, [], empty_message)
    return Rendered(counters, [build_card(c, view) for c in shown])


def render_public(complaints: Iterable[dict], status: str = ALL) -> Rendered:
    return _render(complaints, PUBLIC, status)


def render_user(complaints: Iterable[dict], status: str = ALL) -> Rendered:
    complaints = list(complaints)
    empty = NO_COMPLAINTS_SUBMITTED if not complaints else NO_COMPLAINTS_FOUND
    return _render(complaints, USER, status, empty_message=empty)


def render_admin(complaints: Iterable[dict], status: str = ALL, category: str = ALL,
                 user_count: Optional[int] = None) -> Rendered:
    rendered = _render(complaints, ADMIN, status, category)
    if user_count is not None:
        rendered.counters["users"] = user_count
    return rendered
