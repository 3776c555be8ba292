# treefuzz/config.py
import os
import json
from typing import Any, Dict, Optional

DEFAULT_MAX_DEPTH = 10


class TreefuzzConfigError(Exception):
    """Custom exception for treefuzz configuration errors."""
    pass


class TreefuzzConfig:
    def __init__(self, grammar: str = "arithmetic", parser: str = "earley", **kwargs):
        self._data = {
            "grammar": grammar,
            "start_symbol": kwargs.get("start_symbol", None),
            "parser": parser,
            "input_dir": os.path.expanduser(kwargs.get("input_dir", "~/treefuzz_inputs")),
            "output_dir": os.path.expanduser(kwargs.get("output_dir", "~/.treefuzz/testcases")),
            "crash_dir": os.path.expanduser(kwargs.get("crash_dir", "~/.treefuzz/crashes")),
            "stats_file": kwargs.get("stats_file", None),
            "max_depth": kwargs.get("max_depth", DEFAULT_MAX_DEPTH),
            "max_length": kwargs.get("max_length", 1000),
            "max_fragments": kwargs.get("max_fragments", 100),
            "max_trees": kwargs.get("max_trees", 1000),
            "testcases": kwargs.get("testcases", 100),
            "mutations_per_input": kwargs.get("mutations_per_input", 2),
            "crossover_rate": kwargs.get("crossover_rate", 0.2),
            "generated_seeds": kwargs.get("generated_seeds", 10),
            "seed": kwargs.get("seed", None),
            "target": kwargs.get("target", None),
            "timeout": kwargs.get("timeout", 10),
            "job_name": kwargs.get("job_name", "treefuzz"),
            "log_level": kwargs.get("log_level", "INFO"),
        }

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def __getattr__(self, name: str) -> Any:
        if name in self._data:
            return self._data[name]
        raise AttributeError(f"'TreefuzzConfig' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "_data":
            super().__setattr__(name, value)
        else:
            self._data[name] = value

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "TreefuzzConfig":
        """
        Load config from config_path (default: ~/.treefuzz/config.json).

        The default file is created with default values when missing.
        """
        if config_path is None:
            config_path = os.path.join(_ensure_treefuzz_dir(), "config.json")
            if not os.path.exists(config_path):
                config = cls()
                config.save(config_path)
                return config

        config_path = os.path.expanduser(config_path)
        try:
            with open(config_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise TreefuzzConfigError(f"Failed to load config from {config_path}: {e}")

        if not isinstance(data, dict):
            raise TreefuzzConfigError(f"Config in {config_path} must be a JSON object")
        return cls(**data)

    def save(self, config_path: Optional[str] = None) -> None:
        if config_path is None:
            config_path = os.path.join(_ensure_treefuzz_dir(), "config.json")
        try:
            with open(os.path.expanduser(config_path), "w") as f:
                json.dump(self._data, f, indent=2)
        except OSError as e:
            raise TreefuzzConfigError(f"Failed to save treefuzz config: {e}")


def _ensure_treefuzz_dir() -> str:
    """Ensure that ~/.treefuzz/ directory exists. Return its path."""
    home = os.path.expanduser("~")
    treefuzz_dir = os.path.join(home, ".treefuzz")
    os.makedirs(treefuzz_dir, exist_ok=True)
    return treefuzz_dir
