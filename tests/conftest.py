"""Shared fixtures for engine tests.

Fixtures:
- fake_clock: Manually advanced monotonic clock
- auto_clock: Clock that advances on every read
- small_engine_config: Engine constants scaled down for fast runs
- engine_factory: Builds initialized engines with seeded randomness
- restore_logging: Undoes root logger changes made by setup_logging()
"""

import logging

import pytest

from chaos_game.simulator import ChaosGameEngine
from chaos_game.utils import logging_config, validators


class FakeClock:
    """Callable clock; advances only when told to (plus an optional auto step)."""

    def __init__(self, start: float = 0.0, auto_step: float = 0.0):
        self.now = start
        self.auto_step = auto_step

    def __call__(self) -> float:
        current = self.now
        self.now += self.auto_step
        return current

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def small_engine_config():
    """Batch / interval sizes small enough for unit-test runs."""
    return validators.validate_engine_config({
        'batch_size': 500,
        'burn_in_steps': 300,
        'stability_interval': 1000,
        'stability_window': 10,
        'time_budget_ms': 50,
        'render_interval_ms': 100,
    })


@pytest.fixture
def engine_factory(small_engine_config):
    """Return a builder: engine_factory(seed=..., clock=..., **settings)."""
    def build(seed=1234, clock=None, config=None, **settings):
        kwargs = {'seed': seed}
        if clock is not None:
            kwargs['clock'] = clock
        engine = ChaosGameEngine(config or small_engine_config, **kwargs)
        base = {'canvas_size': 64, 'padding': 4}
        base.update(settings)
        engine.initialize(base)
        return engine
    return build


@pytest.fixture
def auto_clock():
    """Clock that advances 1 ms on every read, so time budgets are spent deterministically."""
    return FakeClock(auto_step=0.001)


@pytest.fixture
def restore_logging():
    """Put root handlers and level back and clear logging context after the test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(False)
    logging_config.pop_context()
