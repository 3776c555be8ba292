import os
import random
import hashlib
from typing import List, Optional, Set, Tuple

from config import TreefuzzConfig
from fuzzers.base import Fuzzer
from fuzzers.fuzzer_stats import FuzzerStats, EnergyScheduler
from grammar import GrammarGenerator, TreeMutator, load_grammar
from grammar.derivation_tree import DerivationTree
from harness import ExecutionResult, Harness, Outcome
from parsers import ParseError, load_parser


def _hash(data: str) -> str:
    return hashlib.sha1(data.encode("utf-8", errors="surrogatepass")).hexdigest()


class GrammarFuzzer(Fuzzer):
    """
    Tree-based mutation fuzzer.

    Seed inputs are parsed into derivation trees; new inputs are made by
    mutating and recombining those trees under grammar symbol identity.
    """

    def __init__(self, input_dir: str, config: TreefuzzConfig = None):
        super().__init__(input_dir, config)
        self.index = 0
        self.random = random.Random(self.config.seed)

        self.grammar = load_grammar(self.config.grammar, self.config.start_symbol)
        parser_kwargs = {"max_trees": self.config.max_trees} if self.config.parser == "earley" else {}
        self.parser = load_parser(self.config.parser, self.grammar, **parser_kwargs)
        self.generator = GrammarGenerator(self.grammar, max_depth=self.config.max_depth,
                                          max_length=self.config.max_length, rng=self.random)
        self.mutator = TreeMutator(self.grammar, self.generator, rng=self.random,
                                   max_fragments=self.config.max_fragments)

        self.output_dir = os.path.expanduser(self.config.output_dir)
        self.crash_dir = os.path.expanduser(self.config.crash_dir)
        self.total_testcases = self.config.testcases

        self.stats = FuzzerStats(self.config.stats_file)
        self.scheduler = EnergyScheduler()
        self.population: List[DerivationTree] = []
        self._population_hashes: List[str] = []
        self._seen: Set[str] = set()

        self.last_tree: Optional[DerivationTree] = None
        self.last_parent: Optional[str] = None
        self.last_strategy: Optional[str] = None

        self._load_seeds()
        if not self.population:
            self.logger.warning("No usable seed inputs, generating seeds from the grammar")
            for _ in range(max(1, self.config.generated_seeds)):
                self.add_to_population(self.generator.generate_tree())

        self.logger.info(f"Fuzzer ready: {len(self.population)} inputs in population, "
                         f"{self.total_testcases} testcases planned")

    def _load_seeds(self):
        """Parse every seed file in input_dir; unparsable seeds are skipped."""
        if not os.path.isdir(self.input_dir):
            self.logger.warning(f"Seed directory {self.input_dir} does not exist")
            return

        seed_files = sorted(
            os.path.join(self.input_dir, f)
            for f in os.listdir(self.input_dir)
            if os.path.isfile(os.path.join(self.input_dir, f)) and not f.endswith(".json")
        )
        self.logger.debug(f"Found {len(seed_files)} seed files in {self.input_dir}")

        for seed_file in seed_files:
            try:
                with open(seed_file, "r", encoding="utf-8") as f:
                    content = f.read()
            except (OSError, UnicodeDecodeError) as e:
                self.logger.error(f"Failed to read seed {seed_file}: {e}")
                continue

            tree = self._parse_seed(content)
            if tree is None:
                self.logger.warning(f"Seed {os.path.basename(seed_file)} does not parse, skipping")
                continue
            self.add_to_population(tree)

    def _parse_seed(self, content: str) -> Optional[DerivationTree]:
        candidates = [content]
        if content.endswith("\n"):
            candidates.append(content.rstrip("\r\n"))

        for candidate in candidates:
            try:
                return self.parser.parse(candidate)
            except ParseError as e:
                self.logger.debug(f"Seed rejected: {e}")
            except RecursionError:
                self.logger.warning(f"Seed of length {len(candidate)} nests too deeply to parse")
        return None

    def add_to_population(self, tree: DerivationTree) -> bool:
        """Add a tree unless its string is already known."""
        data = tree.to_string()
        if data in self._seen:
            return False
        self._seen.add(data)
        self.population.append(tree)
        self._population_hashes.append(_hash(data))
        self.mutator.add_to_fragment_pool(tree)
        self.stats.population_size = len(self.population)
        return True

    def _choose(self) -> int:
        """Index of a population member, weighted by scheduler energy."""
        weights = [self.scheduler.get_energy(h) for h in self._population_hashes]
        return self.random.choices(range(len(self.population)), weights=weights)[0]

    def fuzz(self) -> str:
        """Produce one candidate input by mutation or crossover."""
        chosen = self._choose()
        parent = self.population[chosen]

        if len(self.population) > 1 and self.random.random() < self.config.crossover_rate:
            other = self.population[self._choose()]
            child, _ = self.mutator.crossover(parent, other)
            strategies = ["crossover"]
        else:
            child = self.mutator.mutate(parent, mutations=self.config.mutations_per_input)
            strategies = list(self.mutator.last_strategies) or ["none"]

        # Keep candidates within the configured size
        while len(child.to_string()) > self.config.max_length:
            smaller = self.mutator.shrink(child)
            if smaller is None or smaller.size() >= child.size():
                break
            child = smaller

        self.last_tree = child
        self.last_parent = self._population_hashes[chosen]
        self.last_strategy = "+".join(strategies)
        self.stats.record_strategy_use(self.last_strategy)
        return child.to_string()

    def generate_testcase(self) -> str:
        """Write the next candidate to output_dir and return its path."""
        if self.index >= self.total_testcases:
            raise StopIteration("No more testcases in GrammarFuzzer")

        os.makedirs(self.output_dir, exist_ok=True)
        testcase_name = f"{self.config.job_name}_{self.index:06d}.txt"
        testcase_path = os.path.join(self.output_dir, testcase_name)

        data = self.fuzz()
        with open(testcase_path, "w", encoding="utf-8") as f:
            f.write(data)
        self.logger.debug(f"Generated testcase ({self.last_strategy}): {testcase_path}")

        self.index += 1
        return testcase_path

    def next(self) -> bool:
        return self.index < self.total_testcases

    def run(self, harness: Harness, trials: int) -> List[Tuple[str, ExecutionResult]]:
        """
        Fuzz-and-execute loop.

        Passing inputs not seen before join the population; failing inputs
        are saved to crash_dir and boost the energy of their parent.
        """
        results = []

        for _ in range(trials):
            data = self.fuzz()
            result = harness.run_single_testcase(data)
            self.stats.record_execution(result.outcome.value)

            if result.outcome == Outcome.FAIL:
                self.stats.record_crash(result.signature(), self.last_strategy)
                self.scheduler.record_crash(self.last_parent)
                self._save_failure(result)
            elif result.outcome == Outcome.PASS:
                self.add_to_population(self.last_tree)

            results.append((data, result))

        if self.config.stats_file:
            self.stats.save_to_file()

        self.logger.info(f"Ran {trials} inputs: {self.stats.crashes_total} failures, "
                         f"{len(self.stats.unique_crashes)} unique")
        return results

    def _save_failure(self, result: ExecutionResult) -> Optional[str]:
        try:
            os.makedirs(self.crash_dir, exist_ok=True)
            path = os.path.join(self.crash_dir, f"{self.config.job_name}_{_hash(result.input)[:16]}.txt")
            with open(path, "w", encoding="utf-8") as f:
                f.write(result.input)
        except OSError as e:
            self.logger.error(f"Failed to save failing input: {e}")
            return None

        self.logger.debug(f"Saved failing input to {path}")
        return path
