"""Headless runner: play a simulation to convergence and save the frame.

Runs the engine without a display host:
    1. Load settings / engine config YAML (shipped defaults if omitted)
    2. Apply --set key=value overrides (values parsed as YAML scalars)
    3. Play until auto-stop converges or the wall-clock limit is hit
    4. Save the final frame as an (H, W, 4) uint8 RGBA .npy array and the
       settings that produced it as YAML next to it

Usage:
    chaos-game --set sides=5 --set restriction=no-repeat -o out/pentagon.npy
    chaos-game --settings my_settings.yaml --seed 7 --max-seconds 30 -v
    python -m chaos_game.cli --set canvasSize=400 --json-log logs/run.jsonl
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from chaos_game.simulator import ChaosGameEngine
from chaos_game.utils import validators
from chaos_game.utils.logging_config import install_excepthook, pop_context, push_context, setup_logging

logger = logging.getLogger(__name__)


def parse_overrides(pairs: List[str]) -> Dict[str, Any]:
    """Turn ["sides=5", "solidBg=true"] into {"sides": 5, "solidBg": True}.

    Raises
    ------
    ValueError
        If a pair has no '='
    """
    overrides = {}
    for pair in pairs:
        key, sep, raw = pair.partition('=')
        if not sep or not key.strip():
            raise ValueError(f"Expected key=value, got {pair!r}")
        raw = raw.strip()
        if raw.startswith('#'):
            # A color, not a YAML comment
            value = raw
        else:
            value = yaml.safe_load(raw) if raw else None
        overrides[key.strip()] = value
    return overrides


def run_headless(
    settings: validators.Settings,
    engine_config: validators.EngineConfig,
    seed: Optional[int] = None,
    max_seconds: float = 60.0,
) -> Dict[str, Any]:
    """Run one simulation until it converges or max_seconds elapse.

    Returns
    -------
    Dict[str, Any]
        - frame: PixelBuffer of the final render
        - stats: EngineStats at the end of the run
        - converged: bool, True if auto-stop finished the run
        - checks: int, stability checks performed
    """
    engine = ChaosGameEngine(engine_config, seed=seed)
    frames = []
    finished = []
    engine.on("render", frames.append)
    engine.on("finish", finished.append)

    engine.initialize(settings)
    engine.play()
    deadline = time.perf_counter() + max_seconds

    def check_deadline():
        if time.perf_counter() >= deadline:
            logger.warning("Time limit of %.1f s reached before convergence", max_seconds)
            engine.stop()

    engine.run_until_idle(between=check_deadline)

    stats = engine.stats()
    logger.info(
        "Run complete: %d steps, %d points plotted, %d pixels filled",
        stats.steps, stats.plotted_points, stats.filled_pixels,
    )
    return {
        'frame': frames[-1] if frames else engine.render_snapshot(),
        'stats': stats,
        'converged': bool(finished),
        'checks': stats.stability_checks,
    }


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint for headless rendering."""
    parser = argparse.ArgumentParser(
        description="Run a chaos-game simulation headless and save the final frame",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  chaos-game --set sides=5 --set restriction=no-repeat -o out/pentagon.npy
  chaos-game --settings my_settings.yaml --seed 7
""",
    )
    parser.add_argument("--settings", type=Path, default=None,
                        help="Settings YAML (default: shipped settings.default.yaml)")
    parser.add_argument("--engine-config", type=Path, default=None,
                        help="Engine config YAML (default: shipped engine.v1.yaml)")
    parser.add_argument("--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE",
                        help="Override one setting (snake_case or camelCase key); repeatable")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--max-seconds", type=float, default=60.0,
                        help="Stop after this much wall-clock time (default: 60)")
    parser.add_argument("-o", "--output", type=Path, default=Path("chaos_game.npy"),
                        help="Output .npy path for the RGBA frame (default: chaos_game.npy)")
    parser.add_argument("--json-log", type=Path, default=None, help="Also write JSON-lines logs here")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    setup_logging(
        log_level="DEBUG" if args.verbose else "INFO",
        log_file=str(args.json_log) if args.json_log else None,
        json=True,
        context={"app": "chaos_game"},
    )
    install_excepthook()

    try:
        settings = validators.load_settings(args.settings)
        settings = validators.validate_settings(settings, **parse_overrides(args.overrides))
        engine_config = validators.load_engine_config(args.engine_config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    push_context(sides=settings.sides, restriction=settings.restriction.value)
    try:
        result = run_headless(settings, engine_config, seed=args.seed, max_seconds=args.max_seconds)

        args.output.parent.mkdir(parents=True, exist_ok=True)
        np.save(args.output, result['frame'].as_rgba())
        validators.save_settings(settings, args.output.with_suffix('.yaml'))
        logger.info("Saved %s (converged=%s)", args.output, result['converged'])
    finally:
        pop_context(["sides", "restriction"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
