from datetime import datetime, timedelta

import pytest

from core.progress import (
    GENERATION_PHASES,
    RESEARCH_PHASES,
    PhaseWeight,
    ProgressBus,
    ProgressEvent,
    ProgressListener,
    ProgressTracker,
    estimate_time_remaining,
    validate_phase_table,
)


def test_shipped_phase_tables_are_valid():
    validate_phase_table(RESEARCH_PHASES)
    validate_phase_table(GENERATION_PHASES)


def test_overlapping_phases_are_rejected():
    with pytest.raises(ValueError):
        validate_phase_table({"a": PhaseWeight(0, 50), "b": PhaseWeight(40, 10)})


def test_phase_beyond_hundred_is_rejected():
    with pytest.raises(ValueError):
        validate_phase_table({"a": PhaseWeight(90, 20)})


def test_research_phase_bases():
    tracker = ProgressTracker()

    assert tracker.percent == 0
    assert tracker.enter_phase("configuring") == 5
    assert tracker.enter_phase("researching", total_units=4) == 10
    assert tracker.enter_phase("synthesizing") == 90
    assert tracker.enter_phase("completed") == 100


def test_units_spread_across_researching_span():
    tracker = ProgressTracker()
    tracker.enter_phase("researching", total_units=4)

    values = [tracker.complete_unit() for _ in range(4)]

    assert values == [30, 50, 70, 90]


def test_extra_units_do_not_overshoot_the_phase():
    tracker = ProgressTracker()
    tracker.enter_phase("researching", total_units=1)

    tracker.complete_unit()
    assert tracker.complete_unit() == 90


def test_progress_never_decreases():
    tracker = ProgressTracker()
    tracker.enter_phase("synthesizing")

    assert tracker.enter_phase("researching", total_units=2) == 90
    assert tracker.complete_unit() == 90


def test_unknown_phase_raises():
    with pytest.raises(KeyError):
        ProgressTracker().enter_phase("dreaming")


def test_generation_pipeline_progress():
    tracker = ProgressTracker(phases=GENERATION_PHASES)
    tracker.enter_phase("discovery")
    tracker.enter_phase("researching", total_units=2)

    assert tracker.complete_unit() == 50
    assert tracker.enter_phase("writing") == 70


def test_time_remaining_is_unknown_at_zero_progress():
    assert estimate_time_remaining(30, 0) is None
    assert ProgressTracker().time_remaining() is None


def test_time_remaining_extrapolates_rate():
    assert estimate_time_remaining(10, 25) == pytest.approx(30)
    assert estimate_time_remaining(10, 100) == 0


def test_tracker_time_remaining_uses_start_time():
    started = datetime(2026, 1, 1, 12, 0, 0)
    tracker = ProgressTracker(started_at=started)
    tracker.enter_phase("synthesizing")

    remaining = tracker.time_remaining(now=started + timedelta(seconds=90))

    assert remaining == pytest.approx(10)


class _Recorder(ProgressListener):
    def __init__(self):
        self.phases = []
        self.agents = []

    def on_phase_change(self, event):
        self.phases.append(event.status)

    def on_agent_update(self, event):
        self.agents.append(event.agent["id"])


class _Broken(ProgressListener):
    def on_phase_change(self, event):
        raise RuntimeError("listener bug")


def test_bus_dispatches_by_event_type():
    bus = ProgressBus()
    recorder = _Recorder()
    bus.subscribe(recorder)

    bus.publish(ProgressEvent("phase_change", "t1", "researching", 10))
    bus.publish(ProgressEvent("agent_update", "t1", "researching", 30, agent={"id": "a-0"}))

    assert recorder.phases == ["researching"]
    assert recorder.agents == ["a-0"]


def test_broken_listener_does_not_block_others():
    bus = ProgressBus()
    recorder = _Recorder()
    bus.subscribe(_Broken())
    bus.subscribe(recorder)

    bus.publish(ProgressEvent("phase_change", "t1", "completed", 100))

    assert recorder.phases == ["completed"]


def test_unsubscribed_listener_receives_nothing():
    bus = ProgressBus()
    recorder = _Recorder()
    bus.subscribe(recorder)
    bus.unsubscribe(recorder)
    bus.unsubscribe(recorder)

    bus.publish(ProgressEvent("phase_change", "t1", "completed", 100))

    assert recorder.phases == []


def test_event_serializes_timestamp():
    event = ProgressEvent("phase_change", "t1", "started", 0, timestamp=datetime(2026, 1, 1))
    assert event.to_dict()["timestamp"] == "2026-01-01T00:00:00"
