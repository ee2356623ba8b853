from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Set, Tuple, Union

from .nodes import Node

logger = logging.getLogger(__name__)

ParseFunc = Callable[[str], Tuple[Node, ...]]


class FileLoader:
    """Reads and parses files for require/include.

    Relative paths resolve against `base_dir` (the working directory when
    unset). Every file loaded is remembered so that the `*_once` forms can skip
    it on later requests.
    """

    def __init__(self, parse: ParseFunc, base_dir: Union[str, Path, None] = None):
        self._parse = parse
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self.included: Set[Path] = set()

    def resolve(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = (self.base_dir or Path.cwd()) / candidate
        return candidate.resolve()

    def mark_included(self, path: Union[str, Path]) -> None:
        self.included.add(self.resolve(str(path)))

    def load(self, path: str, once: bool = False) -> Optional[Tuple[Node, ...]]:
        """Return the file's statements, or None when `once` and already loaded.

        Raises FileNotFoundError when the file does not exist.
        """
        resolved = self.resolve(path)

        if once and resolved in self.included:
            return None

        if not resolved.is_file():
            raise FileNotFoundError(path)

        text = resolved.read_text(encoding="utf-8")
        self.included.add(resolved)
        logger.debug("loaded %s", resolved)
        return self._parse(text)
