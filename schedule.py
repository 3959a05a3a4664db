# schedule.py

import re

SERVICE_AREAS = ('all', 'omaha', 'lincoln')
TIME_REGEX = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])?\s*$')


def filter_by_location(transports, area='all'):
    """Keeps transports whose pickup or dropoff location mentions the service area."""
    area = (area or 'all').lower()
    if area == 'all':
        return list(transports)
    return [t for t in transports if area in t.pickup.location.lower() or area in t.dropoff.location.lower()]


def time_sort_key(value):
    # Accepts 'HH:MM' and 'h:mm AM'; anything unparseable sorts last in its original order.
    match = TIME_REGEX.match(value or '')
    if not match:
        return (1, 0)
    hours, minutes, meridiem = int(match.group(1)), int(match.group(2)), match.group(3)
    if meridiem:
        hours = hours % 12 + (12 if meridiem.lower() == 'pm' else 0)
    return (0, hours * 60 + minutes)


def sort_by_pickup_time(transports):
    return sorted(transports, key=lambda t: time_sort_key(t.pickup.time))
