from __future__ import annotations

from fleettrack.ingestion.gate import GateDecision, ThrottleGate


class _Clock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_first_reading_is_always_accepted() -> None:
    gate = ThrottleGate(clock=_Clock())
    assert gate.evaluate("v1", 33.0, -112.0) is GateDecision.ACCEPTED
    assert len(gate) == 1


def test_readings_inside_throttle_window_are_throttled_even_if_moved() -> None:
    clock = _Clock()
    gate = ThrottleGate(min_interval=30, clock=clock)
    gate.evaluate("v1", 33.0, -112.0)

    clock.advance(29.9)
    assert gate.evaluate("v1", 34.0, -113.0) is GateDecision.THROTTLED


def test_unmoved_reading_after_window_is_unchanged() -> None:
    clock = _Clock()
    gate = ThrottleGate(min_interval=30, min_coordinate_delta=0.0001, clock=clock)
    gate.evaluate("v1", 33.0, -112.0)

    clock.advance(31)
    assert gate.evaluate("v1", 33.00005, -112.00005) is GateDecision.UNCHANGED


def test_moved_reading_after_window_is_accepted() -> None:
    clock = _Clock()
    gate = ThrottleGate(min_interval=30, clock=clock)
    gate.evaluate("v1", 33.0, -112.0)

    clock.advance(31)
    decision = gate.evaluate("v1", 33.0, -112.001)
    assert decision is GateDecision.ACCEPTED
    assert decision.accepted


def test_rejections_do_not_move_the_reference_point() -> None:
    clock = _Clock()
    gate = ThrottleGate(min_interval=30, clock=clock)
    gate.evaluate("v1", 33.0, -112.0)

    clock.advance(10)
    assert gate.evaluate("v1", 35.0, -112.0) is GateDecision.THROTTLED
    clock.advance(21)
    # Window is measured from the accepted reading at t=0, not the throttled one.
    assert gate.evaluate("v1", 35.0, -112.0) is GateDecision.ACCEPTED


def test_vehicles_are_gated_independently() -> None:
    gate = ThrottleGate(clock=_Clock())
    assert gate.evaluate("v1", 1.0, 1.0).accepted
    assert gate.evaluate("v2", 1.0, 1.0).accepted
    assert not gate.evaluate("v1", 2.0, 2.0).accepted


def test_forget_resets_vehicle_state() -> None:
    gate = ThrottleGate(clock=_Clock())
    gate.evaluate("v1", 1.0, 1.0)
    gate.forget("v1")
    gate.forget("never-seen")
    assert gate.evaluate("v1", 1.0, 1.0) is GateDecision.ACCEPTED
