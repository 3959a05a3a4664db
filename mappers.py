# mappers.py
"""
Record mappers: the only code that reads or writes transport and announcement rows.

Every public method soft-fails. Validation problems and store errors are
logged and turned into a sentinel (None / False / empty list) so the routes
can branch on the return value instead of catching exceptions.
"""

import logging
from datetime import date, timedelta

from records import (ValidationError, announcement_from_row, announcement_to_row, transport_from_row,
                     transport_to_row, validate_announcement, validate_transport)

TRANSPORTS = 'transports'
ANNOUNCEMENTS = 'announcements'
PROFILES = 'users'


def _passes(validate, record, label):
    """Runs a validator; any failure, expected or not, is logged and reported as False."""
    try:
        validate(record)
        return True
    except ValidationError as e:
        logging.error(f"Rejected {label}: {e}")
    except Exception as e:
        logging.error(f"Could not validate {label}: {e}", exc_info=True)
    return False


class TransportMapper:
    def __init__(self, store):
        self.store = store

    def fetch_by_date(self, day):
        try:
            rows = self.store.select(TRANSPORTS, where={'pickup_date': day}, order_by=('pickup_time',))
            return [transport_from_row(r) for r in rows]
        except Exception as e:
            logging.error(f"Error fetching transports for {day}: {e}", exc_info=True)
            return []

    def fetch_range(self, days):
        """One query for all dates, partitioned by pickup date. Every requested date is a key."""
        days = list(days)
        schedule = {d: [] for d in days}
        if not days:
            return schedule
        try:
            rows = self.store.select(TRANSPORTS, where_in={'pickup_date': days}, order_by=('pickup_date', 'pickup_time'))
        except Exception as e:
            logging.error(f"Error fetching transports for {len(days)} dates: {e}", exc_info=True)
            return schedule
        for row in rows:
            try:
                schedule.setdefault(row['pickup_date'], []).append(transport_from_row(row))
            except Exception as e:
                logging.error(f"Skipping malformed transport row {row.get('id')}: {e}")
        return schedule

    def fetch_week(self, start=None, days=7):
        start = start or date.today()
        dates = [(start + timedelta(days=i)).isoformat() for i in range(days)]
        by_date = self.fetch_range(dates)
        return [{"date": d, "transports": by_date[d]} for d in dates]

    def create(self, transport):
        if not _passes(validate_transport, transport, "transport"):
            return None
        try:
            row = self.store.insert(TRANSPORTS, transport_to_row(transport))
            return transport_from_row(row) if row else None
        except Exception as e:
            logging.error(f"Error adding transport: {e}", exc_info=True)
            return None

    def update(self, transport_id, transport):
        if not transport_id:
            logging.error("Missing transport ID for update")
            return None
        if not _passes(validate_transport, transport, f"transport update {transport_id}"):
            return None
        try:
            row = self.store.update(TRANSPORTS, transport_id, transport_to_row(transport))
            if row is None:
                logging.error(f"No transport with ID {transport_id} to update")
                return None
            return transport_from_row(row)
        except Exception as e:
            logging.error(f"Error updating transport {transport_id}: {e}", exc_info=True)
            return None

    def delete(self, transport_id):
        if not transport_id:
            logging.error("Missing transport ID for delete")
            return False
        try:
            return self.store.delete(TRANSPORTS, transport_id) > 0
        except Exception as e:
            logging.error(f"Error deleting transport {transport_id}: {e}", exc_info=True)
            return False


class AnnouncementMapper:
    def __init__(self, store):
        self.store = store

    def _profiles_for(self, rows):
        author_ids = {r['author_id'] for r in rows if r.get('author_id')}
        if not author_ids:
            return {}
        return {p['id']: p for p in self.store.select(PROFILES, where_in={'id': author_ids})}

    def _to_records(self, rows):
        profiles = self._profiles_for(rows)
        return [announcement_from_row(r, profiles.get(r.get('author_id'))) for r in rows]

    def fetch_all(self):
        """Newest first by creation timestamp."""
        try:
            return self._to_records(self.store.select(ANNOUNCEMENTS, order_by=('-timestamp',)))
        except Exception as e:
            logging.error(f"Error fetching announcements: {e}", exc_info=True)
            return []

    def fetch_by_date(self, day):
        try:
            return self._to_records(self.store.select(ANNOUNCEMENTS, where={'date': day}, order_by=('-timestamp',)))
        except Exception as e:
            logging.error(f"Error fetching announcements for {day}: {e}", exc_info=True)
            return []

    def fetch_range(self, days):
        days = list(days)
        by_date = {d: [] for d in days}
        if not days:
            return by_date
        try:
            records = self._to_records(self.store.select(ANNOUNCEMENTS, where_in={'date': days}, order_by=('-timestamp',)))
        except Exception as e:
            logging.error(f"Error fetching announcements for {len(days)} dates: {e}", exc_info=True)
            return by_date
        for a in records:
            by_date.setdefault(a.date, []).append(a)
        return by_date

    def create(self, announcement, author_id=None):
        if not _passes(validate_announcement, announcement, "announcement"):
            return None
        try:
            row = announcement_to_row(announcement)
            row['author_id'] = author_id
            stored = self.store.insert(ANNOUNCEMENTS, row)
            return self._to_records([stored])[0] if stored else None
        except Exception as e:
            logging.error(f"Error adding announcement: {e}", exc_info=True)
            return None

    def update(self, announcement_id, announcement):
        """Edits title/content/date/priority only; the creation timestamp and author stay as they were."""
        if not announcement_id:
            logging.error("Missing announcement ID for update")
            return None
        if not _passes(validate_announcement, announcement, f"announcement update {announcement_id}"):
            return None
        try:
            stored = self.store.update(ANNOUNCEMENTS, announcement_id, announcement_to_row(announcement, creating=False))
            if stored is None:
                logging.error(f"No announcement with ID {announcement_id} to update")
                return None
            return self._to_records([stored])[0]
        except Exception as e:
            logging.error(f"Error updating announcement {announcement_id}: {e}", exc_info=True)
            return None

    def delete(self, announcement_id):
        if not announcement_id:
            logging.error("Missing announcement ID for delete")
            return False
        try:
            return self.store.delete(ANNOUNCEMENTS, announcement_id) > 0
        except Exception as e:
            logging.error(f"Error deleting announcement {announcement_id}: {e}", exc_info=True)
            return False
