"""Test the stability detector and the time-budgeted batch scheduler.

Tests for chaos_game.simulator.stability and chaos_game.simulator.scheduler:
    - EMA recurrence, quiet streaks and reset on a loud check
    - Fill-ratio telemetry
    - Quantum budget, render pacing, stability cadence
    - Stop / finish transitions and the run_until_idle driver

Fixtures:
- host: recording BatchHost that advances a fake clock per batch
"""

import pytest

from chaos_game.simulator.scheduler import BatchScheduler, QuantumResult, SchedulerState, run_until_idle
from chaos_game.simulator.stability import StabilityDetector
from chaos_game.utils import validators


# ============================================================================
# STABILITY DETECTOR
# ============================================================================

def test_ema_recurrence():
    det = StabilityDetector(alpha=0.2, window=3)
    first = det.check(100, threshold=1.0)
    second = det.check(50, threshold=1.0)

    assert first.ema == pytest.approx(20.0)
    assert second.ema == pytest.approx(0.2 * 50 + 0.8 * 20.0)
    assert not second.converged


def test_converges_after_window_quiet_checks():
    det = StabilityDetector(alpha=1.0, window=3)
    det.check(10, threshold=1.0)
    events = [det.check(0, threshold=1.0) for _ in range(3)]

    assert [e.quiet_checks for e in events] == [1, 2, 3]
    assert [e.converged for e in events] == [False, False, True]


def test_loud_check_restarts_quiet_streak():
    det = StabilityDetector(alpha=1.0, window=3)
    det.check(0, 1.0)
    det.check(0, 1.0)
    loud = det.check(5, 1.0)
    assert loud.quiet_checks == 0
    assert det.check(0, 1.0).quiet_checks == 1


def test_fill_ratio():
    det = StabilityDetector()
    first = det.check(0, 1.0)
    assert first.fill_ratio == 0.0

    det.check(100, 1.0)
    event = det.check(25, 1.0)
    assert event.filled_pixels == 125
    assert event.fill_ratio == pytest.approx((1 - 25 / 125) * 100)


def test_detector_reset():
    det = StabilityDetector(alpha=0.5, window=2)
    det.check(40, 1.0)
    det.reset()
    assert det.ema == 0.0
    assert det.quiet_checks == 0
    assert det.checks == 0
    assert det.filled_pixels == 0


@pytest.mark.parametrize("alpha,window", [(0.0, 10), (1.5, 10), (0.2, 0)])
def test_detector_rejects_bad_parameters(alpha, window):
    with pytest.raises(ValueError):
        StabilityDetector(alpha=alpha, window=window)


# ============================================================================
# SCHEDULER FIXTURES
# ============================================================================

class RecordingHost:
    """BatchHost double: each batch costs batch_ms on the shared fake clock."""

    def __init__(self, clock, batch_ms=20.0, plotted=100):
        self.clock = clock
        self.batch_ms = batch_ms
        self.plotted = plotted
        self.auto_stop = True
        self.live_rendering = True
        self.batches = 0
        self.checks = 0
        self.renders = 0
        self.finished = []
        self.converge_on_check = None
        self.on_batch = None

    def run_batch(self, steps):
        self.batches += 1
        self.clock.advance(self.batch_ms / 1000.0)
        if self.on_batch is not None:
            self.on_batch()
        return self.plotted

    def check_stability(self):
        self.checks += 1
        return self.converge_on_check is not None and self.checks >= self.converge_on_check

    def render(self):
        self.renders += 1

    def finish(self, elapsed_time):
        self.finished.append(elapsed_time)


@pytest.fixture
def config():
    return validators.validate_engine_config({
        'batch_size': 100,
        'time_budget_ms': 50,
        'render_interval_ms': 100,
        'stability_interval': 250,
    })


@pytest.fixture
def host(fake_clock):
    return RecordingHost(fake_clock)


@pytest.fixture
def scheduler(host, config, fake_clock):
    return BatchScheduler(host, config, clock=fake_clock)


# ============================================================================
# SCHEDULER
# ============================================================================

def test_idle_quantum_does_nothing(scheduler, host):
    assert scheduler.run_quantum() is QuantumResult.DONE
    assert host.batches == 0


def test_play_is_idempotent(scheduler):
    assert scheduler.play() is True
    assert scheduler.play() is False
    assert scheduler.state is SchedulerState.RUNNING


def test_quantum_runs_until_budget_spent(scheduler, host):
    scheduler.play()
    result = scheduler.run_quantum()

    # 20 ms batches against a 50 ms budget: 20, 40, 60
    assert result is QuantumResult.CONTINUE
    assert host.batches == 3


def test_at_least_one_batch_per_quantum(scheduler, host):
    host.batch_ms = 500.0
    scheduler.play()
    scheduler.run_quantum()
    assert host.batches == 1


def test_budget_override(scheduler, host):
    scheduler.play()
    scheduler.run_quantum(budget_ms=90)
    assert host.batches == 5


def test_render_paced_by_interval(scheduler, host):
    scheduler.play()
    scheduler.run_quantum()  # 60 ms since play
    assert host.renders == 0
    scheduler.run_quantum()  # 120 ms
    assert host.renders == 1
    scheduler.run_quantum()  # 180 ms, only 60 since last render
    assert host.renders == 1


def test_no_live_render_when_disabled(scheduler, host):
    host.live_rendering = False
    scheduler.play()
    for _ in range(4):
        scheduler.run_quantum()
    assert host.renders == 0


def test_stability_checked_every_interval(scheduler, host):
    scheduler.play()
    scheduler.run_quantum(budget_ms=190)  # 10 batches, 1000 points

    # A check fires at 300 points and resets the counter: 300, 600, 900
    assert host.batches == 10
    assert host.checks == 3
    assert scheduler.iterations == 100


def test_no_checks_without_auto_stop(scheduler, host):
    host.auto_stop = False
    scheduler.play()
    scheduler.run_quantum(budget_ms=190)
    assert host.checks == 0
    assert scheduler.iterations == 0


def test_convergence_finishes_inside_quantum(scheduler, host, fake_clock):
    host.converge_on_check = 2
    scheduler.play()
    result = scheduler.run_quantum(budget_ms=1000)

    assert result is QuantumResult.DONE
    assert scheduler.state is SchedulerState.IDLE
    assert host.batches == 6
    assert host.finished == [pytest.approx(0.12)]
    assert host.renders == 1


def test_stop_renders_final_frame(scheduler, host):
    scheduler.play()
    scheduler.run_quantum()
    assert scheduler.stop() is True
    assert host.renders == 1
    assert scheduler.stop() is False
    assert scheduler.run_quantum() is QuantumResult.DONE


def test_stop_from_callback_ends_quantum(scheduler, host):
    scheduler.play()
    host.on_batch = scheduler.stop
    result = scheduler.run_quantum()

    assert result is QuantumResult.DONE
    assert host.batches == 1


def test_batch_timer_tracks_batches(scheduler, host):
    scheduler.play()
    scheduler.run_quantum()
    assert scheduler.batch_timer.count == 3
    assert scheduler.batch_timer.mean() == pytest.approx(0.02)


def test_run_until_idle_stops_on_convergence(scheduler, host):
    host.converge_on_check = 4
    scheduler.play()
    quanta = run_until_idle(scheduler)

    assert scheduler.state is SchedulerState.IDLE
    assert host.checks == 4
    assert len(host.finished) == 1
    assert quanta == 4


def test_run_until_idle_max_quanta_keeps_running(scheduler, host):
    calls = []
    scheduler.play()
    quanta = run_until_idle(scheduler, max_quanta=3, between=lambda: calls.append(1))

    assert quanta == 3
    assert len(calls) == 3
    assert scheduler.is_running


def test_run_until_idle_between_can_stop(scheduler, host):
    scheduler.play()
    quanta = run_until_idle(scheduler, between=scheduler.stop)
    assert quanta == 1
    assert not scheduler.is_running
