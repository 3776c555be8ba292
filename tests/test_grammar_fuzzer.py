"""
Tests for GrammarFuzzer, FuzzerStats and EnergyScheduler.
"""

import os
import json
import pytest

from grammar import GrammarError
from harness import FunctionHarness, Outcome
from parsers import EarleyParser


class TestGrammarFuzzerSeeds:
    """Tests for seed loading."""

    def test_seeds_are_parsed(self, seed_dir, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config())
        assert sorted(t.to_string() for t in fuzzer.population) == ["(3*4)-5", "1+2"]
        assert fuzzer.stats.population_size == 2

    def test_generated_seeds_when_dir_missing(self, tmp_path, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        fuzzer = GrammarFuzzer(str(tmp_path / "missing"), fuzz_config(generated_seeds=5))
        assert 1 <= len(fuzzer.population) <= 5

    def test_duplicate_population_entries(self, seed_dir, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config())
        assert not fuzzer.add_to_population(fuzzer.population[0])
        assert len(fuzzer.population) == 2

    def test_peg_with_left_recursive_grammar(self, seed_dir, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        with pytest.raises(GrammarError):
            GrammarFuzzer(str(seed_dir), fuzz_config(parser="peg"))

    def test_peg_grammar(self, seed_dir, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config(grammar="arithmetic_peg", parser="peg"))
        assert len(fuzzer.population) == 2
        assert fuzzer.parser.recognize(fuzzer.fuzz())

    def test_long_seed(self, tmp_path, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        seeds = tmp_path / "long_seeds"
        seeds.mkdir()
        (seeds / "digits").write_text("1" * 600)

        fuzzer = GrammarFuzzer(str(seeds), fuzz_config())
        assert [t.to_string() for t in fuzzer.population] == ["1" * 600]

    def test_recursion_error_skips_seed(self, seed_dir, fuzz_config, monkeypatch):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        original = EarleyParser.parse

        def parse(self, text, start_symbol=None):
            if text.startswith("("):
                raise RecursionError("maximum recursion depth exceeded")
            return original(self, text, start_symbol)

        monkeypatch.setattr(EarleyParser, "parse", parse)
        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config())
        assert [t.to_string() for t in fuzzer.population] == ["1+2"]


class TestGrammarFuzzerTestcases:
    """Tests for testcase generation."""

    def test_fuzz_outputs_are_valid(self, seed_dir, fuzz_config, arithmetic_grammar):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config(crossover_rate=0.5))
        parser = EarleyParser(arithmetic_grammar)
        for _ in range(30):
            data = fuzzer.fuzz()
            assert parser.recognize(data)
            assert fuzzer.last_tree.to_string() == data
            assert fuzzer.last_strategy

    def test_generate_testcase_writes_files(self, seed_dir, fuzz_config, tmp_path):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config(testcases=3))
        paths = []
        while fuzzer.next():
            paths.append(fuzzer.generate_testcase())

        assert len(paths) == 3
        assert os.path.basename(paths[0]) == "treefuzz_000000.txt"
        assert all(os.path.dirname(p) == str(tmp_path / "testcases") for p in paths)
        assert all(os.path.exists(p) for p in paths)

        with pytest.raises(StopIteration):
            fuzzer.generate_testcase()

    def test_same_seed_same_outputs(self, seed_dir, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        first = GrammarFuzzer(str(seed_dir), fuzz_config(seed=99))
        second = GrammarFuzzer(str(seed_dir), fuzz_config(seed=99))
        assert [first.fuzz() for _ in range(5)] == [second.fuzz() for _ in range(5)]

    def test_zero_energy_input_is_never_a_parent(self, seed_dir, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer, _hash

        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config(crossover_rate=0.0))
        fuzzer.scheduler.set_energy(_hash("1+2"), 0)
        for _ in range(20):
            fuzzer.fuzz()
            assert fuzzer.last_parent == _hash("(3*4)-5")

    def test_load_fuzzer(self, seed_dir, fuzz_config):
        from fuzzers import load_fuzzer
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        assert isinstance(load_fuzzer("grammar", str(seed_dir), fuzz_config()), GrammarFuzzer)
        with pytest.raises(ValueError, match="Invalid fuzzer plugin"):
            load_fuzzer("nonexistent", str(seed_dir), fuzz_config())


class TestGrammarFuzzerRun:
    """Tests for the fuzz-and-execute loop."""

    def test_failures_are_saved(self, seed_dir, fuzz_config, tmp_path):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        def target(data):
            raise RuntimeError("always broken")

        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config())
        results = fuzzer.run(FunctionHarness(target), 5)

        assert len(results) == 5
        assert all(r.outcome == Outcome.FAIL for _, r in results)
        assert fuzzer.stats.crashes_total == 5
        assert fuzzer.stats.get_stats()["crashes_unique"] == 1

        saved = os.listdir(tmp_path / "crashes")
        assert saved
        assert all(name.startswith("treefuzz_") for name in saved)
        assert sum(fuzzer.scheduler.seed_crashes.values()) == 5

    def test_passing_inputs_grow_population(self, seed_dir, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config())
        fuzzer.run(FunctionHarness(lambda data: None), 10)

        assert fuzzer.stats.outcomes["PASS"] == 10
        assert fuzzer.stats.crashes_total == 0
        assert len(fuzzer.population) >= 2
        assert fuzzer.stats.population_size == len(fuzzer.population)

    def test_rejected_inputs_are_unresolved(self, seed_dir, fuzz_config):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        def target(data):
            raise ValueError("rejected")

        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config())
        fuzzer.run(FunctionHarness(target, expected_exceptions=(ValueError,)), 3)
        assert fuzzer.stats.outcomes["UNRESOLVED"] == 3
        assert len(fuzzer.population) == 2

    def test_stats_file_written(self, seed_dir, fuzz_config, tmp_path):
        from fuzzers.grammar_fuzzer import GrammarFuzzer

        stats_file = tmp_path / "stats.json"
        fuzzer = GrammarFuzzer(str(seed_dir), fuzz_config(stats_file=str(stats_file)))
        fuzzer.run(FunctionHarness(lambda data: None), 2)

        with open(stats_file) as f:
            data = json.load(f)
        assert data["total_execs"] == 2


class TestFuzzerStats:
    """Tests for FuzzerStats and EnergyScheduler."""

    def test_strategy_rankings(self):
        from fuzzers.fuzzer_stats import FuzzerStats

        stats = FuzzerStats()
        for _ in range(4):
            stats.record_strategy_use("swap")
        stats.record_strategy_use("shrink")
        stats.record_crash("rc=1:", "shrink")

        rankings = stats.get_strategy_rankings()
        assert rankings[0][0] == "shrink"
        assert rankings[0][1] == 100.0

    def test_save_and_load(self, tmp_path):
        from fuzzers.fuzzer_stats import FuzzerStats

        path = str(tmp_path / "stats.json")
        stats = FuzzerStats(path)
        stats.record_execution("FAIL")
        stats.record_crash("rc=1:boom")
        stats.save_to_file()

        loaded = FuzzerStats(path)
        loaded.load_from_file()
        assert loaded.total_execs == 1
        assert loaded.unique_crashes == {"rc=1:boom"}
        assert loaded.outcomes["FAIL"] == 1

    def test_summary_table(self):
        from rich.table import Table
        from fuzzers.fuzzer_stats import FuzzerStats

        stats = FuzzerStats()
        stats.record_execution("PASS")
        assert isinstance(stats.summary_table(), Table)

    def test_energy_boost(self):
        from fuzzers.fuzzer_stats import EnergyScheduler

        scheduler = EnergyScheduler()
        assert scheduler.get_energy("abc") == 1
        scheduler.record_crash("abc")
        assert scheduler.get_energy("abc") == 2
        for _ in range(5):
            scheduler.record_crash("abc")
        assert scheduler.get_energy("abc") == 10

        scheduler.set_energy("def", 3)
        assert scheduler.get_energy("def") == 3
