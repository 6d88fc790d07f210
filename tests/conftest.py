"""
Test configuration and fixtures for the motolang test suite.
"""
import asyncio
import sys
import pytest
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from motolang.context import Registry
from motolang.parser import parse


SAMPLE_SCRIPT = """
let greeting = "hello";

// runtime with its own settings
runtime dart {
    let version = "3.7.0";
    let path = "path/to/dart.exe";
    task build {
        echo "Building with dart"
        [:path] --version
    }:shell
}:moto

task greet {
    echo "[:greeting] [:name=world]"
}:shell

block credits { developed by incredimo for xo.rs }:text
"""


@pytest.fixture
def sample_script() -> str:
    """Return a small script touching every top-level cell kind."""
    return SAMPLE_SCRIPT


@pytest.fixture
def parser_func():
    """Return the parse function."""
    return parse


@pytest.fixture
def make_registry():
    """Build a registry pre-filled with the cells of a script."""

    def _make(source: str = SAMPLE_SCRIPT, max_iterations: int = 64) -> Registry:
        registry = Registry(max_iterations=max_iterations)
        asyncio.run(registry.extend(parse(source)))
        return registry

    return _make


@pytest.fixture
def script_dir(tmp_path: Path):
    """Write scripts into a temporary directory: script_dir({"a.moto": "..."})."""

    def _write(files: dict) -> Path:
        for name, text in files.items():
            path = tmp_path / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return tmp_path

    return _write
