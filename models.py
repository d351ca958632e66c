# models.py
from datetime import datetime, timezone
from typing import Optional

STATUS_PENDING = "pending"
STATUS_RESOLVED = "resolved"
STATUSES = (STATUS_PENDING, STATUS_RESOLVED)

# ordered, lowest first
URGENCIES = ("low", "medium", "high", "critical")
HIGH_URGENCIES = ("high", "critical")

CATEGORIES = (
    "Infrastructure",
    "Hostel",
    "Academics",
    "Canteen",
    "Transport",
    "IT Services",
    "Library",
    "Other",
)

DEPARTMENTS = (
    "Computer Science",
    "Electronics",
    "Mechanical",
    "Civil",
    "Electrical",
    "Management",
    "Sciences",
    "Humanities",
    "Other",
)

ALL = "all"


def now_iso() -> str:
    """UTC timestamp; ISO strings keep lexicographic == chronological order."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def is_high_urgency(urgency: Optional[str]) -> bool:
    return urgency in HIGH_URGENCIES


def record_from_doc(doc) -> dict:
    """Firestore DocumentSnapshot -> plain dict with the document id merged in."""
    data = doc.to_dict() or {}
    return {"id": doc.id, **data}


def new_user_record(uid: str, name: str, student_id: str, email: str, department: str,
                    is_admin: bool = False) -> dict:
    return {
        "uid": uid,
        "name": name,
        "studentId": student_id,
        "email": email,
        "department": department,
        "isAdmin": is_admin,
        "registeredAt": now_iso(),
    }


def new_complaint_record(user: dict, category: str, location: str, description: str,
                         urgency: str) -> dict:
    return {
        "category": category,
        "location": location,
        "description": description,
        "urgency": urgency,
        "studentId": user.get("studentId"),
        "studentName": user.get("name"),
        "studentEmail": user.get("email"),
        "status": STATUS_PENDING,
        "submittedAt": now_iso(),
        "userId": user.get("uid"),
    }
