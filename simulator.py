#!/usr/bin/env python3
"""
Deadlock Prediction & Resolution Simulator
Main entry point for the simulation system.

Drives the engine tick by tick (periodically or as fast as possible),
logs what happens and prints run statistics.
"""

import argparse
import dataclasses
import sys
import time
from typing import Optional, Tuple

from engine import DeadlockEngine, TickResult
from models.errors import InvalidConfiguration
from utils.config_loader import EngineConfig, load_config, parse_speed
from utils.logger import SimulatorLogger
from analysis.events import EventLog
from analysis.metrics import SimulationMetrics, format_metrics_report
from analysis.analyzer import compare_predictive_modes, generate_comparison_report


class SimulationRunner:
    """
    Periodic ticking on top of an engine.

    Ticks run one at a time on the caller's thread. stop() takes effect
    before the next tick starts; a tick in progress always completes.
    """

    def __init__(self, engine: DeadlockEngine, sleep=time.sleep):
        self.engine = engine
        self.metrics = SimulationMetrics()
        self._sleep = sleep
        self._stop_requested = False

    @property
    def interval(self) -> float:
        """Seconds between ticks, from the configured speed."""
        return self.engine.config.speed.interval_seconds

    def stop(self) -> None:
        """Request that no further tick starts."""
        self._stop_requested = True

    @property
    def stopped(self) -> bool:
        return self._stop_requested

    def step(self) -> TickResult:
        """Manual single step."""
        result = self.engine.tick()
        self.metrics.record_tick(result)
        return result

    def run(self, max_ticks: int, realtime: bool = False) -> str:
        """
        Tick until max_ticks ticks ran or stop() was called.

        Args:
            max_ticks: Upper bound on ticks in this run
            realtime: Wait the configured interval between ticks

        Returns:
            Stop reason
        """
        self._stop_requested = False
        for count in range(max_ticks):
            if self._stop_requested:
                return f"Stopped after {count} ticks"
            if realtime and count > 0:
                self._sleep(self.interval)
                if self._stop_requested:
                    return f"Stopped after {count} ticks"
            self.step()
        return f"Maximum ticks reached ({max_ticks})"


def run_simulation(
    config: EngineConfig,
    ticks: int,
    verbose: bool = False,
    realtime: bool = False,
    log_file: Optional[str] = None,
    echo: bool = True
) -> Tuple[EventLog, SimulationMetrics, str]:
    """
    Run the simulation for a fixed number of ticks.

    Args:
        config: Engine configuration
        ticks: Number of ticks to run
        verbose: Enable verbose logging (state dump every tick)
        realtime: Wait the configured tick interval between ticks
        log_file: Optional file to mirror the log into
        echo: Print the log to the console

    Returns:
        Tuple of (event log, metrics, stop reason)
    """
    logger = SimulatorLogger(verbose=verbose, log_file=log_file, echo=echo)

    # Keep the whole history for the final report
    engine = DeadlockEngine(dataclasses.replace(config, log_capacity=None), logger=logger)
    runner = SimulationRunner(engine)

    logger.log(f"\n{'='*60}")
    logger.log("SIMULATION START")
    logger.log(
        f"Predictive mode: {'ON' if config.predictive_mode else 'OFF'}, "
        f"speed: {config.speed.name.lower()}, seed: {config.seed}"
    )
    logger.log(f"{'='*60}\n")
    logger.log("Initial System State:")
    logger.log(engine.state.display())

    try:
        stop_reason = runner.run(ticks, realtime=realtime)
    except KeyboardInterrupt:
        runner.stop()
        stop_reason = f"Interrupted after {engine.tick_count} ticks"

    logger.log(f"\n{'='*60}")
    logger.log("SIMULATION COMPLETE")
    logger.log(f"{'='*60}\n")
    logger.log(engine.state.display())
    logger.log(format_metrics_report(runner.metrics, verbose=verbose, stop_reason=stop_reason))

    logger.close()
    return engine.event_log, runner.metrics, stop_reason


def main():
    """Main entry point for the simulator."""
    parser = argparse.ArgumentParser(
        description='Deadlock Prediction & Resolution Simulator'
    )
    parser.add_argument(
        '--config',
        type=str,
        help='Path to scenario JSON file (default: built-in P1..P4 / R1..R4)'
    )
    parser.add_argument(
        '--ticks',
        type=int,
        default=50,
        help='Number of ticks to run (default: 50)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        help='Seed for random release/request events'
    )
    parser.add_argument(
        '--speed',
        choices=['slow', 'normal', 'fast'],
        help='Tick interval used with --realtime (default: normal)'
    )
    parser.add_argument(
        '--no-predict',
        action='store_true',
        help='Disable deadlock prediction'
    )
    parser.add_argument(
        '--manual-resolve',
        action='store_true',
        help='Resolve a detected deadlock on the following tick instead of immediately'
    )
    parser.add_argument(
        '--realtime',
        action='store_true',
        help='Wait the tick interval between ticks'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write the log to this file'
    )
    parser.add_argument(
        '--analyze',
        action='store_true',
        help='Compare predictive mode on/off over many seeded runs'
    )
    parser.add_argument(
        '--runs',
        type=int,
        default=100,
        help='Number of runs per mode for --analyze (default: 100)'
    )

    args = parser.parse_args()

    if args.ticks <= 0:
        parser.error('--ticks must be positive')
    if args.runs <= 0:
        parser.error('--runs must be positive')

    try:
        config = load_config(args.config) if args.config else EngineConfig()
        if args.seed is not None:
            config.seed = args.seed
        if args.speed:
            config.speed = parse_speed(args.speed)
        if args.no_predict:
            config.predictive_mode = False
        if args.manual_resolve:
            config.auto_resolve = False
        config.validate()
    except InvalidConfiguration as e:
        print(f"[ERROR] Invalid configuration: {e}")
        return 1

    if args.analyze:
        base_seed = config.seed if config.seed is not None else 0
        results, _ = compare_predictive_modes(config, args.runs, args.ticks, base_seed)
        print(generate_comparison_report(results, args.runs, args.ticks))
        return 0

    run_simulation(config, args.ticks, args.verbose, args.realtime, args.log_file)
    return 0


if __name__ == '__main__':
    sys.exit(main())
