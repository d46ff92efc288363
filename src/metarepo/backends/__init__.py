"""Repository store implementations."""

from metarepo.backends.memory import InMemoryRepository
from metarepo.backends.yaml_file import YamlRepository

__all__ = ["InMemoryRepository", "YamlRepository"]
