"""
Unit tests for the day schedule builder (glamcrm/engine/schedule.py).
"""

import logging
from datetime import date, datetime, timedelta

import pytest

from glamcrm.engine.schedule import build_day_schedule
from glamcrm.models import Appointment, RichEvent

DAY = date(2026, 6, 20)
DAY_START = datetime(2026, 6, 20, 0, 0)
DAY_END = datetime(2026, 6, 20, 23, 59)


def at(hour, minute=0):
    return datetime(2026, 6, 20, hour, minute)


def rich(start, end=None, event_id='e'):
    return RichEvent(event=Appointment(id=event_id, title=event_id), start=start, end=end)


def spans(slots):
    return [(s.type, s.start.strftime('%H:%M'), s.end.strftime('%H:%M')) for s in slots]


def assert_covers_day(slots):
    assert slots[0].start == DAY_START
    assert slots[-1].end == DAY_END
    for before, after in zip(slots, slots[1:]):
        assert before.end == after.start
    for slot in slots:
        assert slot.end >= slot.start
        if slot.type == 'open':
            assert slot.end > slot.start


def test_two_appointments_scenario():
    slots = build_day_schedule([rich(at(14), at(15), 'b'), rich(at(9), at(10), 'a')], DAY)
    assert spans(slots) == [
        ('open', '00:00', '09:00'),
        ('event', '09:00', '10:00'),
        ('open', '10:00', '14:00'),
        ('event', '14:00', '15:00'),
        ('open', '15:00', '23:59'),
    ]
    assert [s.rich.event.id for s in slots if s.type == 'event'] == ['a', 'b']


def test_empty_day_is_one_open_slot():
    slots = build_day_schedule([], DAY)
    assert spans(slots) == [('open', '00:00', '23:59')]


def test_day_accepts_datetime_and_iso_string():
    assert build_day_schedule([], datetime(2026, 6, 20, 15, 45))[0].start == DAY_START
    assert build_day_schedule([], '2026-06-20')[0].start == DAY_START


def test_invalid_day_raises():
    with pytest.raises(ValueError):
        build_day_schedule([], 'not a day')


def test_event_at_midnight_has_no_leading_open_slot():
    slots = build_day_schedule([rich(at(0), at(2))], DAY)
    assert spans(slots)[0] == ('event', '00:00', '02:00')
    assert_covers_day(slots)


def test_back_to_back_events_have_no_open_slot_between():
    slots = build_day_schedule([rich(at(9), at(10), 'a'), rich(at(10), at(11), 'b')], DAY)
    assert spans(slots) == [
        ('open', '00:00', '09:00'),
        ('event', '09:00', '10:00'),
        ('event', '10:00', '11:00'),
        ('open', '11:00', '23:59'),
    ]


def test_missing_end_defaults_to_one_hour():
    slots = build_day_schedule([rich(at(9))], DAY)
    assert spans(slots)[1] == ('event', '09:00', '10:00')


def test_overlapping_events_are_clamped():
    slots = build_day_schedule([rich(at(9), at(12), 'long'), rich(at(10), at(11), 'inside')], DAY)
    assert spans(slots) == [
        ('open', '00:00', '09:00'),
        ('event', '09:00', '12:00'),
        ('event', '12:00', '12:00'),
        ('open', '12:00', '23:59'),
    ]
    assert_covers_day(slots)


def test_partial_overlap_starts_at_cursor():
    slots = build_day_schedule([rich(at(9), at(11), 'a'), rich(at(10), at(13), 'b')], DAY)
    assert spans(slots)[2] == ('event', '11:00', '13:00')
    assert_covers_day(slots)


def test_event_running_past_midnight_is_clamped_to_day_end():
    slots = build_day_schedule([rich(at(22), at(23, 59) + timedelta(hours=3))], DAY)
    assert spans(slots) == [('open', '00:00', '22:00'), ('event', '22:00', '23:59')]


def test_events_without_start_are_skipped_and_logged(caplog):
    with caplog.at_level(logging.WARNING, logger='glamcrm.engine.schedule'):
        slots = build_day_schedule([rich(None), rich(at(9), at(10))], DAY)
    assert len([s for s in slots if s.type == 'event']) == 1
    assert '1 event(s) without a start time' in caplog.text


@pytest.mark.parametrize("windows", [
    [(9, 10)],
    [(8, 12), (9, 10), (11, 15)],
    [(0, 1), (23, 23)],
    [(6, 7), (6, 7), (6, 8)],
])
def test_slots_cover_the_whole_day(windows):
    events = [rich(at(start), at(end), f'e{i}') for i, (start, end) in enumerate(windows)]
    assert_covers_day(build_day_schedule(events, DAY))


def test_events_on_other_days_are_ignored():
    yesterday = DAY_START - timedelta(hours=3)
    tomorrow = DAY_START + timedelta(days=1, hours=9)
    slots = build_day_schedule([rich(yesterday, yesterday + timedelta(hours=1), 'old'),
                                rich(tomorrow, None, 'next'),
                                rich(at(9), at(10), 'today')], DAY)
    assert spans(slots) == [
        ('open', '00:00', '09:00'),
        ('event', '09:00', '10:00'),
        ('open', '10:00', '23:59'),
    ]


def test_event_from_previous_evening_runs_into_the_day():
    late = DAY_START - timedelta(hours=1)
    slots = build_day_schedule([rich(late, at(1), 'late')], DAY)
    assert spans(slots)[0] == ('event', '00:00', '01:00')
    assert_covers_day(slots)
