"""
Project ID generation

Project ids look like ``project_1718000000000_k3j9x0a1b``: the creation
time in epoch milliseconds followed by nine random base-36 characters.
They sort roughly by creation time and stay readable in CLI output.
"""

import secrets
from datetime import datetime
from typing import Protocol

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class IdFactory(Protocol):
    """Protocol for ID generation strategies"""

    def generate(self, at: datetime) -> str:
        """Generate a new unique ID for an entity created at the given time"""
        ...


def random_suffix(length: int = 9) -> str:
    """Random lowercase base-36 string"""
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def generate_project_id(at: datetime) -> str:
    """
    Generate a project identifier

    Args:
        at: Creation time (from the injected TimeProvider)

    Returns:
        Identifier such as "project_1718000000000_k3j9x0a1b"
    """
    timestamp_ms = int(at.timestamp() * 1000)
    return f"project_{timestamp_ms}_{random_suffix()}"


class DefaultIdFactory:
    """Default ID factory producing project_<ms>_<random> ids"""

    def generate(self, at: datetime) -> str:
        return generate_project_id(at)


class SequentialIdFactory:
    """Predictable ids (project-1, project-2, ...) for tests"""

    def __init__(self, prefix: str = "project") -> None:
        self.prefix = prefix
        self._counter = 0

    def generate(self, at: datetime) -> str:
        self._counter += 1
        return f"{self.prefix}-{self._counter}"
