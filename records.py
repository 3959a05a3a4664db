# records.py
"""
Application-level records and their translation to/from flat table rows.

The UI works with nested records (client/pickup/dropoff/staff); the tables
store one flat row per record. Defaults are applied in both directions so a
record read back from the store looks the same as the one that was written.
"""

import re
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

TRANSPORT_STATUSES = ('scheduled', 'in-progress', 'completed')
PRIORITIES = ('high', 'medium', 'low')
ANONYMOUS_AUTHOR = 'Anonymous'
DATE_REGEX = re.compile(r'^\d{4}-\d{2}-\d{2}$')


class ValidationError(ValueError):
    """A record is missing a required field or carries an out-of-range value."""


@dataclass
class Client:
    name: str = ''
    phone: str = ''


@dataclass
class Stop:
    location: str = ''
    time: str = ''
    date: str = ''


@dataclass
class Staff:
    requestedBy: str = ''
    driver: str = ''
    assistant: Optional[str] = None


@dataclass
class Transport:
    client: Client = field(default_factory=Client)
    pickup: Stop = field(default_factory=Stop)
    dropoff: Stop = field(default_factory=Stop)
    staff: Staff = field(default_factory=Staff)
    clientCount: int = 1
    carSeats: int = 0
    status: str = 'scheduled'
    notes: Optional[str] = None
    vehicle: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transport':
        """Builds a record from the JSON shape the UI posts. Unknown keys are ignored."""
        data = data or {}
        client, pickup, dropoff, staff = (_section(data, k) for k in ('client', 'pickup', 'dropoff', 'staff'))
        return cls(
            id=data.get('id'),
            client=Client(name=_text(client.get('name')), phone=_text(client.get('phone'))),
            pickup=Stop(location=_text(pickup.get('location')), time=_text(pickup.get('time')), date=_text(pickup.get('date'))),
            dropoff=Stop(location=_text(dropoff.get('location')), time=_text(dropoff.get('time')), date=_text(dropoff.get('date'))),
            staff=Staff(requestedBy=_text(staff.get('requestedBy')), driver=_text(staff.get('driver')), assistant=staff.get('assistant') or None),
            clientCount=data.get('clientCount'),
            carSeats=data.get('carSeats'),
            status=data.get('status') or 'scheduled',
            notes=data.get('notes') or None,
            vehicle=data.get('vehicle') or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Announcement:
    title: str = ''
    content: str = ''
    date: str = ''
    timestamp: Optional[str] = None
    priority: str = 'medium'
    author: str = ANONYMOUS_AUTHOR
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Announcement':
        data = data or {}
        return cls(
            id=data.get('id'),
            title=_text(data.get('title')).strip(),
            content=_text(data.get('content')).strip(),
            date=_text(data.get('date')),
            timestamp=data.get('timestamp') or None,
            priority=data.get('priority') or 'medium',
            author=data.get('author') or ANONYMOUS_AUTHOR,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _text(value) -> str:
    return '' if value is None else str(value)


def _section(data, key) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _count(value, default, minimum, label):
    # Missing or zero falls back to the default, the same way rows are read back.
    if value in (None, '', 0, '0'):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a whole number.")
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{label} must be a whole number.")
    if number < minimum:
        raise ValidationError(f"{label} cannot be less than {minimum}.")
    return number


# --- Validation ---
def is_iso_date(value) -> bool:
    if not isinstance(value, str) or not DATE_REGEX.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def validate_transport(transport: Transport) -> Transport:
    """Checks required fields and normalizes counts in place. Raises ValidationError."""
    if not transport.client.name.strip() or not transport.pickup.location.strip() or not transport.staff.driver.strip():
        raise ValidationError("Client name, pickup location, and driver are mandatory fields.")
    if transport.status not in TRANSPORT_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(TRANSPORT_STATUSES)}.")
    if not is_iso_date(transport.pickup.date):
        raise ValidationError("Pickup date must be in YYYY-MM-DD format.")
    if transport.dropoff.date and not is_iso_date(transport.dropoff.date):
        raise ValidationError("Dropoff date must be in YYYY-MM-DD format.")
    transport.clientCount = _count(transport.clientCount, 1, 1, "Client count")
    transport.carSeats = _count(transport.carSeats, 0, 0, "Car seats")
    return transport


def validate_announcement(announcement: Announcement) -> Announcement:
    if not announcement.title or not announcement.content:
        raise ValidationError("Title and content are mandatory fields.")
    if announcement.priority not in PRIORITIES:
        raise ValidationError(f"Priority must be one of: {', '.join(PRIORITIES)}.")
    return announcement


# --- Transport <-> row ---
def transport_to_row(t: Transport) -> Dict[str, Any]:
    return {
        'client_name': t.client.name,
        'client_phone': t.client.phone or '',
        'pickup_location': t.pickup.location,
        'pickup_time': t.pickup.time or '',
        'pickup_date': t.pickup.date,
        'dropoff_location': t.dropoff.location or '',
        'dropoff_time': t.dropoff.time or '',
        'dropoff_date': t.dropoff.date or t.pickup.date,
        'requested_by': t.staff.requestedBy or None,
        'driver_id': t.staff.driver,
        'assistant_id': t.staff.assistant or None,
        'client_count': t.clientCount or 1,
        'status': t.status or 'scheduled',
        'notes': t.notes or None,
        'vehicle': t.vehicle or None,
        'car_seats': t.carSeats or 0,
    }


def transport_from_row(row: Dict[str, Any]) -> Transport:
    return Transport(
        id=row['id'],
        client=Client(name=row['client_name'], phone=row.get('client_phone') or ''),
        pickup=Stop(location=row['pickup_location'], time=row.get('pickup_time') or '', date=row['pickup_date']),
        dropoff=Stop(location=row.get('dropoff_location') or '', time=row.get('dropoff_time') or '',
                     date=row.get('dropoff_date') or row['pickup_date']),
        staff=Staff(requestedBy=row.get('requested_by') or '', driver=row['driver_id'], assistant=row.get('assistant_id')),
        clientCount=row.get('client_count') or 1,
        carSeats=row.get('car_seats') or 0,
        status=row.get('status') or 'scheduled',
        notes=row.get('notes'),
        vehicle=row.get('vehicle'),
    )


# --- Announcement <-> row ---
def parse_timestamp(value) -> datetime:
    """ISO-8601 string (or datetime) to a naive UTC datetime, the form the table stores."""
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def format_timestamp(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        value = parse_timestamp(value)
    return value.replace(tzinfo=timezone.utc).isoformat()


def announcement_to_row(a: Announcement, creating=True) -> Dict[str, Any]:
    """Row values for a write. The creation instant is always stamped here, never taken from the record;
    an edit leaves the timestamp alone and only touches the date when one is given."""
    row = {'title': a.title, 'content': a.content, 'priority': a.priority or 'medium'}
    if creating:
        row['date'] = a.date or date.today().isoformat()
        row['timestamp'] = datetime.now(timezone.utc).replace(tzinfo=None)
    elif a.date:
        row['date'] = a.date
    return row


def resolve_author(author_id: Optional[str], profile: Optional[Dict[str, Any]]) -> str:
    if profile:
        return profile.get('name') or profile.get('email') or profile.get('id') or 'Admin'
    if author_id:
        return 'Admin'
    return ANONYMOUS_AUTHOR


def announcement_from_row(row: Dict[str, Any], profile: Optional[Dict[str, Any]] = None) -> Announcement:
    return Announcement(
        id=row['id'],
        title=row['title'],
        content=row['content'],
        date=row['date'],
        timestamp=format_timestamp(row.get('timestamp')),
        priority=row.get('priority') or 'medium',
        author=resolve_author(row.get('author_id'), profile),
    )
