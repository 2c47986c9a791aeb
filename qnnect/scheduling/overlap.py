"""Intersect faculty availability with Google Calendar events.

Two computations live here: flagging configured slots that collide with an
external event, and the "unavailable windows" shown on the calendar card.
All-day events carry no time of day and are ignored by both.
"""

import copy
import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from qnnect.scheduling.availability import (
    DAY_NAMES_TR,
    WEEKDAYS,
    default_week,
    format_hhmm,
    parse_hhmm,
)

logger = logging.getLogger(__name__)

SYSTEM_EVENT_PREFIX = 'Randevu:'
DEFAULT_EVENT_NAME = 'Etkinlik'

WINDOW_BEFORE_FIRST = 'before_first'
WINDOW_BETWEEN_EVENTS = 'between_events'
WINDOW_AFTER_LAST = 'after_last'
WINDOW_NO_EVENTS = 'no_events'

WINDOW_LABELS = {
    WINDOW_BEFORE_FIRST: 'İlk etkinlikten önce',
    WINDOW_BETWEEN_EVENTS: 'Etkinlikler arası',
    WINDOW_AFTER_LAST: 'Son etkinlikten sonra',
    WINDOW_NO_EVENTS: 'Etkinlik yok',
}

SAMPLE_EVENTS = (
    ('Sabah Toplantısı', time(9, 0), time(10, 0)),
    ('Ders Saati', time(14, 0), time(15, 30)),
)


def _parse_event_datetime(value: str, tz: ZoneInfo) -> datetime:
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        return parsed
    return parsed.astimezone(tz).replace(tzinfo=None)


def event_bounds(event: dict, tz: ZoneInfo) -> tuple[datetime, datetime] | None:
    start = (event.get('start') or {}).get('dateTime')
    end = (event.get('end') or {}).get('dateTime')
    if not start or not end:
        return None
    return _parse_event_datetime(start, tz), _parse_event_datetime(end, tz)


def timed_events(events: list[dict], tz: ZoneInfo) -> list[dict]:
    """Flatten Google events into ``{id, summary, start, end}`` with local naive datetimes."""
    flattened = []
    for event in events:
        try:
            bounds = event_bounds(event, tz)
        except ValueError:
            logger.warning('Skipping calendar event %s with unreadable times', event.get('id'))
            continue
        if bounds is None:
            continue
        flattened.append({
            'id': event.get('id'),
            'summary': event.get('summary') or '',
            'start': bounds[0],
            'end': bounds[1],
        })
    flattened.sort(key=lambda item: item['start'])
    return flattened


def group_events_by_day(events: list[dict], tz: ZoneInfo) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {day: [] for day in WEEKDAYS}
    for event in timed_events(events, tz):
        grouped[WEEKDAYS[event['start'].weekday()]].append(event)
    return grouped


def _event_times(event: dict) -> tuple[time, time]:
    start, end = event['start'], event['end']
    # An event running past midnight blocks the rest of its start day.
    end_time = end.time() if end.date() == start.date() else time.max
    return start.time(), end_time


def resolve_day_conflicts(day_name: str, slots: list[dict], events: list[dict]) -> tuple[list[dict], list[dict]]:
    """Flag ``slots`` of one weekday that intersect ``events``.

    ``events`` are flattened events that fall on that weekday. Returns the
    updated slots and one conflict record per newly blocked slot.
    """
    updated_slots = []
    conflicts = []
    day_tr = DAY_NAMES_TR.get(day_name, day_name)

    for original in slots:
        slot = dict(original)
        slot_start = parse_hhmm(slot['start'])
        slot_end = parse_hhmm(slot['end'])
        was_available = slot.get('isAvailable', True) is not False

        conflicting_event = None
        for event in events:
            if event['summary'].startswith(SYSTEM_EVENT_PREFIX):
                continue
            event_start, event_end = _event_times(event)
            if slot_start < event_end and slot_end > event_start:
                conflicting_event = event
                break

        if conflicting_event is not None:
            summary = conflicting_event['summary'] or DEFAULT_EVENT_NAME
            slot['isAvailable'] = False
            slot['hasConflict'] = True
            slot['conflictReason'] = summary
            if was_available:
                conflicts.append({
                    'id': f"{day_name}_{slot['start']}_{slot['end']}_"
                          f"{conflicting_event['summary'] or conflicting_event['id']}",
                    'day': day_tr,
                    'slot': f"{slot['start']}-{slot['end']}",
                    'event_name': summary,
                    'event_time': f"{format_hhmm(conflicting_event['start'])}-"
                                  f"{format_hhmm(conflicting_event['end'])}",
                })
        elif slot.get('hasConflict'):
            slot['hasConflict'] = False
            slot['conflictReason'] = None
            slot['isAvailable'] = not slot.get('manuallyUnavailable', False)

        if slot.get('manuallyUnavailable'):
            slot['isAvailable'] = False

        updated_slots.append(slot)

    return updated_slots, conflicts


def resolve_conflicts(
    availability: list[dict] | None,
    events: list[dict],
    tz: ZoneInfo,
    acknowledged=(),
) -> tuple[list[dict], list[dict]]:
    """Recalculate a whole week against calendar events.

    Returns a fresh availability list (the input is never mutated) and the
    conflict records that were not acknowledged yet.
    """
    week = copy.deepcopy(availability) if availability else default_week()
    grouped = group_events_by_day(events, tz)
    acknowledged_ids = set(acknowledged)

    conflicts = []
    for day in week:
        day_events = grouped.get(day.get('day'), [])
        slots, day_conflicts = resolve_day_conflicts(day.get('day'), day.get('timeSlots') or [], day_events)
        day['timeSlots'] = slots
        conflicts.extend(record for record in day_conflicts if record['id'] not in acknowledged_ids)

    return week, conflicts


def _window(window_type: str, start: datetime, end: datetime) -> dict:
    return {
        'type': window_type,
        'label': WINDOW_LABELS[window_type],
        'start': format_hhmm(start),
        'end': format_hhmm(end),
        'duration': int((end - start).total_seconds() // 60),
    }


def unavailable_windows(events: list[dict], day_start: datetime, day_end: datetime, min_gap: int = 15) -> list[dict]:
    """Gap windows of a single day around its flattened ``events``.

    Only windows strictly longer than ``min_gap`` minutes are reported.
    """
    if not events:
        return [_window(WINDOW_NO_EVENTS, day_start, day_end)]

    ordered = sorted(events, key=lambda event: event['start'])
    threshold = timedelta(minutes=min_gap)
    windows = []

    first_start = ordered[0]['start']
    if first_start - day_start > threshold:
        windows.append(_window(WINDOW_BEFORE_FIRST, day_start, first_start))

    # Nested or overlapping events: a gap starts only where everything so far has ended.
    covered_until = ordered[0]['end']
    for following in ordered[1:]:
        if following['start'] - covered_until > threshold:
            windows.append(_window(WINDOW_BETWEEN_EVENTS, covered_until, following['start']))
        covered_until = max(covered_until, following['end'])

    if day_end - covered_until > threshold:
        windows.append(_window(WINDOW_AFTER_LAST, covered_until, day_end))

    return windows


def week_start(today: date) -> date:
    return today - timedelta(days=today.weekday())


def weekly_overview(
    events: list[dict],
    tz: ZoneInfo,
    start_date: date,
    day_start: str,
    day_end: str,
    days: int = 7,
    min_gap: int = 15,
) -> list[dict]:
    flattened = timed_events(events, tz)
    opening = parse_hhmm(day_start)
    closing = parse_hhmm(day_end)

    overview = []
    for offset in range(days):
        current = start_date + timedelta(days=offset)
        day_events = [event for event in flattened if event['start'].date() == current]
        overview.append({
            'date': current.isoformat(),
            'day_name': DAY_NAMES_TR[WEEKDAYS[current.weekday()]],
            'events': [
                {
                    'title': event['summary'] or DEFAULT_EVENT_NAME,
                    'start': format_hhmm(event['start']),
                    'end': format_hhmm(event['end']),
                    'duration': int((event['end'] - event['start']).total_seconds() // 60),
                }
                for event in day_events
            ],
            'windows': unavailable_windows(
                day_events,
                datetime.combine(current, opening),
                datetime.combine(current, closing),
                min_gap=min_gap,
            ),
        })
    return overview


def sample_events(today: date) -> list[dict]:
    """Placeholder events for the current week, in Google's event shape."""
    monday = week_start(today)
    events = []
    for offset in range(7):
        current = monday + timedelta(days=offset)
        for index, (summary, start, end) in enumerate(SAMPLE_EVENTS):
            events.append({
                'id': f'sample-{current.isoformat()}-{index}',
                'summary': summary,
                'start': {'dateTime': datetime.combine(current, start).isoformat()},
                'end': {'dateTime': datetime.combine(current, end).isoformat()},
            })
    return events
