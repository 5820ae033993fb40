"""
Shared fixtures for the Tableau Language Server tests.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import pytest

from tableau_language_server.analysis import DocumentAnalyzer
from tableau_language_server.analysis.incremental import ReparseController


class FakeClock:
    """Manually advanced replacement for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def sample_calculation(blocks: int = 8) -> str:
    """A multi-line calculation made of commented IF blocks joined by '+'."""
    lines = []
    for i in range(blocks):
        lines.append(f"// tier {i}")
        lines.append(f"IF [Sales] > {i * 100} THEN")
        lines.append(f"    SUM([Profit]) * {i}")
        lines.append("ELSE")
        lines.append("    0")
        lines.append("END +")
    lines.append("AVG([Discount])")
    return "\n".join(lines)


@pytest.fixture
def analyzer():
    return DocumentAnalyzer()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def controller(clock):
    return ReparseController(clock=clock)


@pytest.fixture
def calculation():
    return sample_calculation()
