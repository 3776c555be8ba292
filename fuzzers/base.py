from abc import ABC, abstractmethod
import os
import logging

from config import TreefuzzConfig


class Fuzzer(ABC):
    def __init__(self, input_dir: str, config: TreefuzzConfig = None):
        self.input_dir = os.path.expanduser(str(input_dir))
        self.config = config or TreefuzzConfig()
        self.logger = logging.getLogger(f"treefuzz.fuzzer.{self.__class__.__name__}")

    @abstractmethod
    def fuzz(self) -> str:
        """Produce a single fuzz input in memory."""
        pass

    @abstractmethod
    def generate_testcase(self) -> str:
        """Generate a single testcase file, return its path."""
        pass

    @abstractmethod
    def next(self) -> bool:
        """Return True if more testcases remain."""
        pass
