from __future__ import annotations

import pytest

from documind.stores import InMemoryStore
from tests._fixtures.fakes import FakeSource, FakeSynthesizer, directory, file_node


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def sample_source() -> FakeSource:
    """Three analyzable files plus one that is never selected."""
    tree = [
        directory(
            "src",
            [
                file_node("src/a.py"),
                file_node("src/b.js"),
                file_node("src/c.ts"),
                file_node("src/style.css"),
            ],
        )
    ]
    files = {
        "src/a.py": "def alpha(x):\n    return x\n",
        "src/b.js": "export function beta(y) {\n  return y;\n}\n",
        "src/c.ts": "class Gamma {\n  static total = 1;\n}\n",
        "src/style.css": "body {}\n",
    }
    return FakeSource(tree, files)


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()
