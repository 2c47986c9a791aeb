"""Weekly availability rules for faculty schedules.

Availability is stored on the user row as a JSON document shaped the way the
web client edits it::

    [{"day": "Monday", "isActive": True,
      "timeSlots": [{"start": "09:00", "end": "12:00", "isAvailable": True,
                     "manuallyUnavailable": False, "hasConflict": False,
                     "conflictReason": None}]}]

Every helper here works on that plain structure and never touches the
database.
"""

import re
from datetime import date, datetime, time, timedelta

TIME_PATTERN = re.compile(r'^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$')

WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')

DAY_NAMES_TR = {
    'Monday': 'Pazartesi',
    'Tuesday': 'Salı',
    'Wednesday': 'Çarşamba',
    'Thursday': 'Perşembe',
    'Friday': 'Cuma',
    'Saturday': 'Cumartesi',
    'Sunday': 'Pazar',
}

MIN_SLOT_DURATION_MINUTES = 10
MAX_SLOT_DURATION_MINUTES = 120

SLOT_DEFAULTS = {
    'isAvailable': True,
    'manuallyUnavailable': False,
    'hasConflict': False,
    'conflictReason': None,
}


class AvailabilityError(ValueError):
    """Raised when a submitted schedule is not acceptable."""

    def __init__(self, errors: list[str]):
        super().__init__('\n'.join(errors))
        self.errors = errors


def is_valid_hhmm(value) -> bool:
    return isinstance(value, str) and bool(TIME_PATTERN.match(value.strip()))


def parse_hhmm(value: str) -> time:
    if not is_valid_hhmm(value):
        raise ValueError(f'Geçerli bir saat formatı giriniz (HH:MM): {value!r}')
    hour, minute = value.strip().split(':')
    return time(int(hour), int(minute))


def format_hhmm(value: time | datetime) -> str:
    return f'{value.hour:02d}:{value.minute:02d}'


def to_minutes(value: str) -> int:
    parsed = parse_hhmm(value)
    return parsed.hour * 60 + parsed.minute


def minutes_between(start: str, end: str) -> int:
    return to_minutes(end) - to_minutes(start)


def add_minutes(value: str, minutes: int) -> str:
    shifted = datetime.combine(date.min, parse_hhmm(value)) + timedelta(minutes=minutes)
    return format_hhmm(shifted)


def ranges_overlap(start1: str, end1: str, start2: str, end2: str) -> bool:
    return to_minutes(start1) < to_minutes(end2) and to_minutes(end1) > to_minutes(start2)


def weekday_name(value: date) -> str:
    return WEEKDAYS[value.weekday()]


def day_display_name(day: str) -> str:
    return DAY_NAMES_TR.get(day, day)


def default_week() -> list[dict]:
    return [{'day': day, 'isActive': False, 'timeSlots': []} for day in WEEKDAYS]


def normalize_slot(slot: dict) -> dict:
    normalized = {**SLOT_DEFAULTS, **slot}
    normalized['start'] = format_hhmm(parse_hhmm(slot['start']))
    normalized['end'] = format_hhmm(parse_hhmm(slot['end']))
    if normalized['manuallyUnavailable']:
        normalized['isAvailable'] = False
    return normalized


def validate_availability(availability: list[dict]) -> list[dict]:
    """Validate a submitted week and return it normalised in weekday order.

    Days that are missing from the submission are added as inactive days.
    All problems are collected so the client can show them together.
    """
    if not isinstance(availability, list):
        raise AvailabilityError(['Müsaitlik bir liste olmalıdır'])

    errors: list[str] = []
    by_day: dict[str, dict] = {}

    for entry in availability:
        day = entry.get('day') if isinstance(entry, dict) else None
        if day not in WEEKDAYS:
            errors.append(f'Geçersiz gün: {day}')
            continue

        day_tr = day_display_name(day)
        if day in by_day:
            errors.append(f'{day_tr} günü birden fazla kez eklenmiş!')
            continue

        slots = entry.get('timeSlots') or []
        if not isinstance(slots, list):
            errors.append(f'{day_tr} günü için zaman aralıkları bir liste olmalıdır')
            continue
        normalized_slots: list[dict] = []

        for slot in slots:
            if not isinstance(slot, dict):
                errors.append(f'{day_tr} günü için geçersiz zaman aralığı: {slot}')
                continue
            start, end = slot.get('start'), slot.get('end')
            if not start or not end:
                errors.append(f'{day_tr} günü için başlangıç ve bitiş saati zorunludur')
                continue
            if not is_valid_hhmm(start) or not is_valid_hhmm(end):
                errors.append(f'{day_tr} günü için geçersiz saat formatı. HH:MM kullanın.')
                continue
            if to_minutes(start) >= to_minutes(end):
                errors.append(f'{day_tr} günü için başlangıç saati bitiş saatinden önce olmalıdır')
                continue
            normalized_slots.append(normalize_slot(slot))

        ranges = [f"{slot['start']}-{slot['end']}" for slot in normalized_slots]
        if len(set(ranges)) != len(ranges):
            errors.append(f'{day_tr} günü için aynı zaman aralığı birden fazla kez eklenmiş!')

        for index, first in enumerate(normalized_slots):
            for second in normalized_slots[index + 1:]:
                if first['start'] == second['start'] and first['end'] == second['end']:
                    continue
                if ranges_overlap(first['start'], first['end'], second['start'], second['end']):
                    errors.append(
                        f"{day_tr} günü: {first['start']}-{first['end']} ve "
                        f"{second['start']}-{second['end']} zaman aralıkları çakışıyor!"
                    )

        normalized_slots.sort(key=lambda slot: to_minutes(slot['start']))
        by_day[day] = {
            'day': day,
            'isActive': bool(entry.get('isActive', False)),
            'timeSlots': normalized_slots,
        }

    if errors:
        raise AvailabilityError(errors)

    return [by_day.get(day, {'day': day, 'isActive': False, 'timeSlots': []}) for day in WEEKDAYS]


def validate_slot_duration(minutes: int) -> int:
    if not MIN_SLOT_DURATION_MINUTES <= minutes <= MAX_SLOT_DURATION_MINUTES:
        raise AvailabilityError([
            f'Slot süresi {MIN_SLOT_DURATION_MINUTES}-{MAX_SLOT_DURATION_MINUTES} dakika arasında olmalıdır'
        ])
    return minutes


def get_day(availability: list[dict] | None, day: str) -> dict | None:
    for entry in availability or []:
        if entry.get('day') == day:
            return entry
    return None


def is_bookable(slot: dict) -> bool:
    return slot.get('isAvailable', True) is not False and not slot.get('manuallyUnavailable', False)


def generate_day_slots(availability: list[dict] | None, target_date: date, slot_duration: int) -> list[tuple[str, str]]:
    """Cut the bookable windows of ``target_date``'s weekday into fixed-length slots."""
    day = get_day(availability, weekday_name(target_date))
    if not day or not day.get('isActive') or not day.get('timeSlots'):
        return []

    generated: list[tuple[str, str]] = []
    seen: set[tuple[str, str]] = set()
    for window in day['timeSlots']:
        if not is_bookable(window):
            continue

        current = to_minutes(window['start'])
        window_end = to_minutes(window['end'])
        while current + slot_duration <= window_end:
            piece = (_minutes_to_hhmm(current), _minutes_to_hhmm(current + slot_duration))
            if piece not in seen:
                seen.add(piece)
                generated.append(piece)
            current += slot_duration

    generated.sort(key=lambda piece: piece[0])
    return generated


def _minutes_to_hhmm(total: int) -> str:
    return f'{total // 60:02d}:{total % 60:02d}'


def max_appointments(slot: dict, slot_duration: int) -> int:
    return minutes_between(slot['start'], slot['end']) // slot_duration


def slot_status(slot: dict, confirmed_count: int, slot_duration: int) -> dict:
    max_count = max_appointments(slot, slot_duration)

    if slot.get('manuallyUnavailable') is True:
        return {
            'status': 'manually_unavailable',
            'display': 'Kapalı (Manuel)',
            'is_bookable': False,
            'count': confirmed_count,
            'max': max_count,
        }

    if slot.get('isAvailable') is True and confirmed_count >= max_count:
        return {
            'status': 'fully_booked',
            'display': 'Doldu',
            'is_bookable': False,
            'count': confirmed_count,
            'max': max_count,
        }

    if slot.get('isAvailable') is True:
        return {
            'status': 'available',
            'display': 'Müsait',
            'is_bookable': True,
            'count': confirmed_count,
            'max': max_count,
        }

    return {
        'status': 'unavailable',
        'display': 'Kapalı',
        'is_bookable': False,
        'count': confirmed_count,
        'max': max_count,
    }


def bookable_slots(
    availability: list[dict] | None,
    target_date: date,
    slot_duration: int,
    taken_ranges: list[tuple[str, str]],
    now: datetime,
) -> list[dict]:
    """Generated slots for a date, flagged by whether they can still be booked.

    ``taken_ranges`` are the (start, end) pairs of the faculty member's
    pending and approved appointments on that date.
    """
    slots = []
    for start, end in generate_day_slots(availability, target_date, slot_duration):
        is_taken = any(ranges_overlap(start, end, taken_start, taken_end) for taken_start, taken_end in taken_ranges)
        is_past = datetime.combine(target_date, parse_hhmm(start)) <= now
        if is_taken:
            slot_state = 'booked'
        elif is_past:
            slot_state = 'past'
        else:
            slot_state = 'available'
        slots.append({
            'start_time': start,
            'end_time': end,
            'available': slot_state == 'available',
            'status': slot_state,
            'is_booked': is_taken,
        })
    return slots
