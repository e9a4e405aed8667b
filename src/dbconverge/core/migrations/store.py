"""Script Store: the on-disk directory of change scripts."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from dbconverge.core.errors import ConfigError, ScriptNotFoundError, ScriptUnreadableError
from dbconverge.core.hashing import compute_content_hash


@dataclass(frozen=True)
class ChangeScript:
    """A change script as read from disk. ``content_hash`` is derived from ``content``."""

    name: str
    content: str
    content_hash: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "content_hash", compute_content_hash(self.content))


class ScriptStore:
    """
    Read-only view of a flat directory of UTF-8 change scripts.

    ``list_scripts`` is sorted lexically for reporting only; it never decides
    the order in which scripts are applied. Only regular files are listed, so
    subdirectories are never reported as orphaned scripts.

    Scripts are decoded from their bytes without newline translation: the
    content hash covers the file exactly as stored, CRLF line endings included.

    Raises:
        ConfigError: if ``directory`` does not exist or is not a directory
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)
        if not self._directory.is_dir():
            raise ConfigError(
                f"{self._directory} does not exist, abort!"
            ).with_context(path=str(self._directory))

    @property
    def directory(self) -> Path:
        return self._directory

    def list_scripts(self) -> list[str]:
        """Sorted names of the regular files in the directory."""
        return sorted(p.name for p in self._directory.iterdir() if p.is_file())

    def exists(self, name: str) -> bool:
        path = self._path_for(name)
        return path is not None and path.is_file()

    def read_script(self, name: str) -> ChangeScript:
        """Read ``name`` from the directory.

        Raises:
            ScriptNotFoundError: if no such file exists
            ScriptUnreadableError: if the file cannot be read or is not UTF-8
        """
        path = self._path_for(name)
        if path is None or not path.is_file():
            display = self._directory / name if name else self._directory
            raise ScriptNotFoundError(f'FILE NOT FOUND: "{display}"').with_context(
                script=name, path=str(display)
            )
        try:
            content = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ScriptUnreadableError(f'Cannot read "{path}": {e}', cause=e).with_context(
                script=name, path=str(path)
            ) from e
        return ChangeScript(name=name, content=content)

    def _path_for(self, name: str) -> Path | None:
        # Plain file names only; separators or dot entries never name a script.
        if not name or name in (".", "..") or Path(name).name != name:
            return None
        return self._directory / name
