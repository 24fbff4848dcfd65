import math
from unittest.mock import MagicMock

import pytest

from database.store import MemoryStore
from database.timer_db import TimerDB
from models.timer import InvalidConfig, TimerConfig, TimerMode
from services.session_log import SessionLog
from services.timer_engine import EXPIRY_MESSAGES, TimerEngine, next_mode, round_half_up
from utils.scheduler import ManualScheduler


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def notify():
    return MagicMock()


@pytest.fixture
def session_log():
    return SessionLog()


@pytest.fixture
def engine(scheduler, session_log, notify):
    return TimerEngine(
        scheduler=scheduler,
        session_log=session_log,
        notify=notify,
        config=TimerConfig(work_seconds=1500, short_break_seconds=300, long_break_seconds=900),
        tick_interval_ms=500,
    )


@pytest.mark.parametrize("work_seconds", [1, 2, 59, 1500])
def test_work_expires_after_exact_duration(engine, scheduler, session_log, work_seconds):
    """Тест: через ровно w секунд - одна запись Work, не раньше."""
    engine.configure(TimerConfig(work_seconds=work_seconds, short_break_seconds=300, long_break_seconds=900))
    started_at = scheduler.now()
    engine.start()

    scheduler.advance(work_seconds - 0.5)
    assert len(session_log) == 0
    assert engine.remaining_seconds == 1

    scheduler.advance(0.5)
    records = session_log.records()
    assert len(records) == 1
    assert records[0].mode == TimerMode.WORK
    assert records[0].completed_at == started_at + work_seconds


def test_zero_duration_expires_on_first_tick(engine, scheduler, session_log, notify):
    engine.configure(TimerConfig(work_seconds=0, short_break_seconds=300, long_break_seconds=900))
    assert engine.remaining_seconds == 0

    engine.start()
    scheduler.advance(0.5)

    assert len(session_log) == 1
    assert engine.mode == TimerMode.SHORT_BREAK
    notify.assert_called_once_with(EXPIRY_MESSAGES[TimerMode.WORK])


def test_scenario_full_pomodoro_switches_to_short_break(engine, scheduler, session_log, notify):
    """Тест: 1500 с работы -> одна запись, режим ShortBreak, остаток = короткому перерыву."""
    engine.start()
    scheduler.advance(1500)

    assert len(session_log) == 1
    assert engine.mode == TimerMode.SHORT_BREAK
    assert engine.remaining_seconds == 300
    assert engine.running is False
    assert engine.deadline is None
    assert scheduler.active_handles() == []
    notify.assert_called_once_with(EXPIRY_MESSAGES[TimerMode.WORK])


def test_pause_resume_preserves_total_time(engine, scheduler, session_log):
    started_at = scheduler.now()
    engine.start()
    scheduler.advance(600)
    engine.pause()
    assert engine.remaining_seconds == 900

    # пауза не тратит время отсчёта
    scheduler.advance(1000)
    assert engine.remaining_seconds == 900
    assert len(session_log) == 0

    engine.start()
    scheduler.advance(900)

    records = session_log.records()
    assert len(records) == 1
    # 1000 секунд паузы не входят в рабочее время
    assert records[0].completed_at == started_at + 2500


def test_pause_between_ticks_expires_within_one_tick(engine, scheduler, session_log):
    started_at = scheduler.now()
    engine.start()
    scheduler.advance(600.3)
    engine.pause()
    engine.start()
    scheduler.advance(899.7 + 0.5)

    records = session_log.records()
    assert len(records) == 1
    assert abs(records[0].completed_at - (started_at + 1500)) <= 0.5


def test_switch_mode_never_appends_record(engine, scheduler, session_log, notify):
    engine.start()
    scheduler.advance(100)

    engine.switch_mode(TimerMode.LONG_BREAK)

    assert len(session_log) == 0
    assert engine.mode == TimerMode.LONG_BREAK
    assert engine.remaining_seconds == 900
    assert engine.running is False
    scheduler.advance(5000)
    assert len(session_log) == 0
    notify.assert_not_called()


def test_switch_mode_accepts_string_value(engine):
    engine.switch_mode("shortBreak")
    assert engine.mode == TimerMode.SHORT_BREAK
    assert engine.remaining_seconds == 300


def test_long_break_is_never_entered_automatically(engine, scheduler, session_log):
    engine.switch_mode(TimerMode.LONG_BREAK)
    engine.start()
    scheduler.advance(900)
    assert engine.mode == TimerMode.WORK

    modes = []
    for _ in range(4):
        engine.start()
        scheduler.advance(engine.remaining_seconds)
        modes.append(engine.mode)

    assert modes == [
        TimerMode.SHORT_BREAK,
        TimerMode.WORK,
        TimerMode.SHORT_BREAK,
        TimerMode.WORK,
    ]
    assert [r.mode for r in session_log] == [
        TimerMode.LONG_BREAK,
        TimerMode.WORK,
        TimerMode.SHORT_BREAK,
        TimerMode.WORK,
        TimerMode.SHORT_BREAK,
    ]


def test_next_mode_rule():
    assert next_mode(TimerMode.WORK) == TimerMode.SHORT_BREAK
    assert next_mode(TimerMode.SHORT_BREAK) == TimerMode.WORK
    assert next_mode(TimerMode.LONG_BREAK) == TimerMode.WORK


def test_reset_restores_configured_duration(engine, scheduler):
    engine.start()
    scheduler.advance(200)
    engine.reset()

    assert engine.running is False
    assert engine.remaining_seconds == 1500
    assert scheduler.active_handles() == []


def test_start_twice_keeps_single_tick_stream(engine, scheduler):
    engine.start()
    deadline = engine.deadline
    scheduler.advance(10)
    engine.start()

    assert len(scheduler.active_handles()) == 1
    assert engine.deadline == deadline


def test_pause_when_not_running_is_noop(engine):
    engine.pause()
    assert engine.remaining_seconds == 1500
    assert engine.running is False


def test_pause_cancels_tick_stream(engine, scheduler):
    engine.start()
    scheduler.advance(3)
    engine.pause()

    assert scheduler.active_handles() == []
    remaining = engine.remaining_seconds
    scheduler.advance(10_000)
    assert engine.remaining_seconds == remaining


def test_close_stops_ticking(engine, scheduler, session_log):
    engine.start()
    engine.close()

    scheduler.advance(10_000)
    assert engine.running is False
    assert len(session_log) == 0


@pytest.mark.parametrize(
    "bad",
    [
        {"work_seconds": -1, "short_break_seconds": 300, "long_break_seconds": 900},
        {"work_seconds": 1500, "short_break_seconds": math.inf, "long_break_seconds": 900},
        {"work_seconds": 1500, "short_break_seconds": 300, "long_break_seconds": math.nan},
        {"work_seconds": "25", "short_break_seconds": 300, "long_break_seconds": 900},
        {"work": 1500},
    ],
)
def test_configure_rejects_invalid_durations(engine, bad):
    before = engine.config

    with pytest.raises(InvalidConfig):
        engine.configure(bad)

    assert engine.config == before
    assert engine.remaining_seconds == 1500


def test_timer_config_rejects_negative():
    with pytest.raises(InvalidConfig):
        TimerConfig(work_seconds=-5)


def test_configure_while_running_keeps_countdown(engine, scheduler, session_log):
    """Тест: новый конфиг не перебазирует идущий отсчёт, а действует со следующего цикла."""
    engine.start()
    scheduler.advance(100)
    deadline = engine.deadline

    engine.configure(TimerConfig(work_seconds=60, short_break_seconds=30, long_break_seconds=90))

    assert engine.running is True
    assert engine.deadline == deadline
    assert engine.remaining_seconds == 1400

    scheduler.advance(1400)
    assert len(session_log) == 1
    assert engine.mode == TimerMode.SHORT_BREAK
    assert engine.remaining_seconds == 30


def test_configure_when_idle_applies_immediately(engine):
    engine.switch_mode(TimerMode.SHORT_BREAK)
    engine.configure(TimerConfig(work_seconds=60, short_break_seconds=30, long_break_seconds=90))
    assert engine.remaining_seconds == 30


def test_configure_does_not_touch_session_log(engine, scheduler, session_log):
    engine.start()
    scheduler.advance(1500)
    records = session_log.records()

    engine.configure(TimerConfig(work_seconds=10, short_break_seconds=10, long_break_seconds=10))

    assert session_log.records() == records


def test_configure_persists_config():
    store = MemoryStore()
    timer_db = TimerDB(store)
    engine = TimerEngine(ManualScheduler(), SessionLog(), MagicMock(), timer_db=timer_db)

    engine.configure(TimerConfig(work_seconds=50 * 60, short_break_seconds=10 * 60, long_break_seconds=30 * 60))

    assert timer_db.load()[0] == TimerConfig(3000, 600, 1800)


def test_reentrant_tick_delivery_fires_expiry_once(engine, scheduler, session_log, notify):
    """Тест: наложившиеся callback'и одного отсчёта -> одно истечение."""
    engine.start()
    handle = scheduler.active_handles()[0]

    scheduler.advance(1500)
    handle.callback()
    handle.callback()
    scheduler.fire(handle)

    assert len(session_log) == 1
    notify.assert_called_once()


def test_stale_tick_from_previous_run_is_ignored(engine, scheduler, session_log):
    engine.start()
    old_handle = scheduler.active_handles()[0]
    scheduler.advance(100)
    engine.pause()
    engine.start()

    scheduler.advance(1399.5)
    old_handle.callback()

    assert len(session_log) == 0
    assert engine.running is True


def test_expiry_survives_clock_discontinuity(engine, scheduler, session_log):
    """Тест: сон системы посреди отсчёта - остаток считается от дедлайна."""
    started_at = scheduler.now()
    engine.start()
    scheduler.advance(100)

    scheduler.jump(3000)
    assert len(session_log) == 0

    scheduler.advance(0.5)
    records = session_log.records()
    assert len(records) == 1
    assert records[0].completed_at == started_at + 3100.5


def test_notify_failure_does_not_break_expiry(scheduler, session_log):
    notify = MagicMock(side_effect=RuntimeError("boom"))
    engine = TimerEngine(scheduler, session_log, notify, config=TimerConfig(10, 5, 15))

    engine.start()
    scheduler.advance(10)

    assert len(session_log) == 1
    assert engine.mode == TimerMode.SHORT_BREAK


def test_store_failure_on_expiry_still_completes_transition(scheduler, notify, caplog):
    """Тест: сбой записи журнала при истечении -> переход завершён, повторного истечения нет"""
    persist = MagicMock(side_effect=[RuntimeError("store down"), None])
    session_log = SessionLog(persist=persist)
    engine = TimerEngine(scheduler, session_log, notify, config=TimerConfig(10, 300, 900))

    engine.start()
    with caplog.at_level("ERROR"):
        scheduler.advance(10)

    assert "Session persist failed" in caplog.text
    assert engine.mode == TimerMode.SHORT_BREAK
    assert engine.remaining_seconds == 300
    assert engine.running is False
    assert len(session_log) == 1
    notify.assert_called_once_with(EXPIRY_MESSAGES[TimerMode.WORK])

    engine.start()
    scheduler.advance(1)

    assert [r.mode for r in session_log] == [TimerMode.WORK]
    assert engine.remaining_seconds == 299


def test_state_snapshot(engine, scheduler):
    engine.start()
    scheduler.advance(5)
    state = engine.state

    assert state.mode == TimerMode.WORK
    assert state.running is True
    assert state.remaining_seconds == 1495
    assert state.deadline == engine.deadline


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(0.49) == 0
    assert round_half_up(2.5) == 3
    assert round_half_up(0) == 0
