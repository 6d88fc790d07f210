from __future__ import annotations
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set, Tuple

from loguru import logger

from .ast import Cell, Import, Package, walk
from .context import Registry
from .errors import ParseError
from .parser import parse_file
from .types import Identifier


@dataclass
class LoadReport:
    loaded: List[Path] = field(default_factory=list)
    failed: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def package_name(path: Path) -> str:
    """File stem turned into a valid identifier."""
    name = re.sub(r"[^A-Za-z0-9_]", "_", path.stem)
    if not name or name[0].isdigit():
        name = "_" + name
    return name


def script_files(directory: Path, extension: str = ".moto") -> List[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == extension)


class ScriptLoader:
    """Parses script files into packages and registers them.

    Every file becomes a ``Package`` named after the file (or after the
    import alias when reached through ``import``). Files are loaded at most
    once per loader so import cycles terminate.
    """

    def __init__(self, registry: Registry):
        self.registry = registry
        self.report = LoadReport()
        self._seen: Set[Path] = set()

    async def load_file(self, path: Path, name: Optional[str] = None) -> Optional[Package]:
        path = Path(path).resolve()
        if path in self._seen:
            return None
        self._seen.add(path)
        try:
            cells = parse_file(path)
        except ParseError as e:
            logger.error("skipping {}: {}", path, e)
            self.report.failed.append((path, str(e)))
            return None
        except OSError as e:
            logger.error("cannot read {}: {}", path, e)
            self.report.failed.append((path, str(e)))
            return None

        package = Package(Identifier(name or package_name(path)), tuple(cells))
        await self.registry.insert(package)
        self.report.loaded.append(path)
        logger.debug("loaded {} as package {} ({} cells)", path.name, package.name, len(cells))

        await self._follow_imports(path, cells)
        return package

    async def _follow_imports(self, origin: Path, cells: List[Cell]) -> None:
        for cell in walk(cells):
            if not isinstance(cell, Import):
                continue
            target = (origin.parent / cell.path).resolve()
            if not target.is_file():
                logger.warning("{}: import {!r} not found", origin.name, cell.path)
                self.report.failed.append((target, "import target not found"))
                continue
            await self.load_file(target, cell.alias.name)

    async def load_directory(self, directory: Path, extension: str = ".moto") -> LoadReport:
        for path in script_files(Path(directory), extension):
            await self.load_file(path)
        return self.report


async def load_directory(registry: Registry, directory: Path, extension: str = ".moto") -> LoadReport:
    return await ScriptLoader(registry).load_directory(directory, extension)
