"""
treefuzz Fuzzer Statistics Tracker

Tracks fuzzing statistics for progress monitoring and seed scheduling.
"""

import json
import time
import logging
from pathlib import Path
from typing import Dict, List
from datetime import datetime, timedelta
from collections import defaultdict

from rich.console import Console
from rich.table import Table


logger = logging.getLogger("treefuzz.fuzzer_stats")


class FuzzerStats:
    """
    Tracks fuzzing statistics.

    Metrics tracked:
    - Executions per second (current and average)
    - Total inputs executed
    - Outcomes (PASS / FAIL / UNRESOLVED)
    - Crashes found (by signature)
    - Strategy effectiveness
    - Population size
    """

    def __init__(self, stats_file: str = None):
        self.stats_file = stats_file
        self.start_time = time.time()
        self.last_update = self.start_time

        # Execution stats
        self.total_execs = 0
        self.last_execs = 0
        self.execs_per_sec_current = 0.0
        self.execs_per_sec_avg = 0.0
        self.outcomes = defaultdict(int)

        # Crash stats
        self.crashes_total = 0
        self.unique_crashes = set()

        # Strategy stats
        self.strategy_stats = defaultdict(lambda: {"attempts": 0, "crashes": 0})

        # Population stats
        self.population_size = 0

        # Timing
        self.elapsed_time = 0

    def record_execution(self, outcome: str = None):
        """Record a single input execution"""
        self.total_execs += 1
        if outcome:
            self.outcomes[outcome] += 1

    def record_crash(self, crash_sig: str, strategy: str = None):
        """
        Record a failing input.

        Args:
            crash_sig: Failure signature (return code and last stderr line)
            strategy: Mutation strategy that produced the input
        """
        self.crashes_total += 1

        if crash_sig not in self.unique_crashes:
            self.unique_crashes.add(crash_sig)
            logger.info(f"New unique failure: {crash_sig} (total unique: {len(self.unique_crashes)})")

        if strategy:
            self.strategy_stats[strategy]["crashes"] += 1

    def record_strategy_use(self, strategy: str):
        """Record usage of a mutation strategy"""
        self.strategy_stats[strategy]["attempts"] += 1

    def update(self):
        """Update calculated statistics (call periodically)"""
        now = time.time()
        self.elapsed_time = now - self.start_time

        # Calculate exec/sec
        time_delta = now - self.last_update
        if time_delta > 0:
            execs_delta = self.total_execs - self.last_execs
            self.execs_per_sec_current = execs_delta / time_delta
            self.last_execs = self.total_execs
            self.last_update = now

        if self.elapsed_time > 0:
            self.execs_per_sec_avg = self.total_execs / self.elapsed_time

    def get_stats(self) -> Dict:
        """Get all statistics as a dictionary"""
        self.update()

        return {
            "elapsed_time": self.elapsed_time,
            "total_execs": self.total_execs,
            "execs_per_sec_current": self.execs_per_sec_current,
            "execs_per_sec_avg": self.execs_per_sec_avg,
            "outcomes": dict(self.outcomes),
            "crashes_total": self.crashes_total,
            "crashes_unique": len(self.unique_crashes),
            "unique_crashes_list": sorted(self.unique_crashes),
            "population_size": self.population_size,
            "strategy_stats": dict(self.strategy_stats),
        }

    def get_strategy_rankings(self) -> List[tuple]:
        """
        Get mutation strategies ranked by effectiveness.

        Returns:
            List of (strategy, crash_rate, attempts, crashes)
        """
        rankings = []

        for strategy, stats in self.strategy_stats.items():
            attempts = stats["attempts"]
            crashes = stats["crashes"]
            crash_rate = (crashes / max(1, attempts)) * 100

            rankings.append((strategy, crash_rate, attempts, crashes))

        # Sort by crash rate descending
        rankings.sort(key=lambda x: x[1], reverse=True)

        return rankings

    def summary_table(self) -> Table:
        """Build a rich table with the statistics summary"""
        stats = self.get_stats()

        table = Table(title="[bold bright_cyan]FUZZER STATISTICS", show_header=False, border_style="bright_blue")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Elapsed time", str(timedelta(seconds=int(stats["elapsed_time"]))))
        table.add_row("Total executions", f"{stats['total_execs']:,}")
        table.add_row("Exec/sec (average)", f"{stats['execs_per_sec_avg']:.2f}")
        for outcome, count in sorted(stats["outcomes"].items()):
            table.add_row(f"Outcome {outcome}", str(count))
        table.add_row("Failures found", str(stats["crashes_total"]))
        table.add_row("Unique failures", str(stats["crashes_unique"]))
        table.add_row("Population size", str(stats["population_size"]))

        for strategy, crash_rate, attempts, crashes in self.get_strategy_rankings()[:10]:
            table.add_row(f"Strategy {strategy}", f"{crashes}/{attempts} ({crash_rate:.1f}%)")

        return table

    def print_summary(self, console: Console = None):
        """Print a human-readable statistics summary"""
        (console or Console()).print(self.summary_table())

    def save_to_file(self, filepath: str = None):
        """Save statistics to JSON file"""
        if filepath is None:
            filepath = self.stats_file

        if filepath is None:
            logger.warning("No stats file specified, skipping save")
            return

        stats = self.get_stats()
        stats["timestamp"] = datetime.now().isoformat()

        try:
            with open(filepath, "w") as f:
                json.dump(stats, f, indent=2)
            logger.debug(f"Saved stats to {filepath}")
        except OSError as e:
            logger.error(f"Failed to save stats: {e}")

    def load_from_file(self, filepath: str = None):
        """Load statistics from JSON file"""
        if filepath is None:
            filepath = self.stats_file

        if filepath is None or not Path(filepath).exists():
            logger.debug("No stats file to load")
            return

        try:
            with open(filepath, "r") as f:
                stats = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load stats: {e}")
            return

        self.total_execs = stats.get("total_execs", 0)
        self.outcomes = defaultdict(int, stats.get("outcomes", {}))
        self.crashes_total = stats.get("crashes_total", 0)
        self.unique_crashes = set(stats.get("unique_crashes_list", []))
        self.population_size = stats.get("population_size", 0)

        # Restore strategy stats
        for strategy, s_stats in stats.get("strategy_stats", {}).items():
            self.strategy_stats[strategy] = s_stats

        logger.info(f"Loaded stats from {filepath}")


class EnergyScheduler:
    """
    Assigns 'energy' (selection weight) to each population member.
    Inputs whose mutants failed get more energy.

    Inspired by AFL's power schedules.
    """

    def __init__(self, default_energy: int = 1):
        self.default_energy = default_energy
        self.seed_energy = {}  # input_hash -> energy
        self.seed_crashes = defaultdict(int)  # input_hash -> crash count

    def get_energy(self, seed_hash: str) -> int:
        """
        Get the selection weight for this input.

        Inputs that led to failures get boosted energy.
        """
        base_energy = self.seed_energy.get(seed_hash, self.default_energy)

        crashes = self.seed_crashes.get(seed_hash, 0)
        if crashes > 0:
            # Exponential boost: 2x per failure found (capped at 10x)
            boost = min(2 ** crashes, 10)
            return int(base_energy * boost)

        return base_energy

    def record_crash(self, seed_hash: str):
        """Record that a mutant of this input failed"""
        self.seed_crashes[seed_hash] += 1
        logger.info(f"Input {seed_hash[:8]} led to failure #{self.seed_crashes[seed_hash]}, "
                    f"energy boosted to {self.get_energy(seed_hash)}")

    def set_energy(self, seed_hash: str, energy: int):
        """Manually set energy for an input"""
        self.seed_energy[seed_hash] = energy
