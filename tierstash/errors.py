"""Exception hierarchy shared by the retention core and its collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class TierstashError(Exception):
    """Base class for every error raised by tierstash."""


class ConfigError(TierstashError):
    """Raised when config is invalid or the directory layout is impossible."""


class StorageError(TierstashError):
    """Raised when a filesystem operation (list, stat, rename, link, unlink) fails."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class IntegrityError(TierstashError):
    """Raised when a horizon holds an entry the link chain does not allow.

    A faster horizon may only hold nothing or a link resolving to the
    slower horizon's entry. A same-named real file, or a link resolving
    somewhere else, means the tree was modified outside tierstash.
    """

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class PlacementError(StorageError):
    """Raised when placing an artifact fails part way.

    Placement is not rolled back. ``placed`` lists the horizon names that
    already hold the artifact (real file or link) and ``artifact`` is where
    the real bytes are right now, so an operator can repair by hand.
    """

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
        placed: Sequence[str] = (),
        artifact: Path | str | None = None,
    ) -> None:
        self.placed = list(placed)
        self.artifact = Path(artifact) if artifact is not None else None
        if self.placed:
            message = (
                f"{message} (partial placement, not rolled back: "
                f"already placed in {', '.join(self.placed)}; data at {self.artifact})"
            )
        super().__init__(message, path)


class ProduceError(TierstashError):
    """Raised when a producer fails to create an artifact."""


class InsufficientSpaceError(ProduceError):
    """Raised when the disk preflight finds too little free space."""
