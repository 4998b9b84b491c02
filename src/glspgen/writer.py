"""
Persists generated files under an output root.

Each file is written to a temporary sibling and moved into place, so a
reader never sees a half-written file. The file set as a whole is not
atomic: files written before a failure stay on disk.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from .core.errors import ErrorContext, OutputWriteError
from .generator import GeneratedFile

logger = logging.getLogger(__name__)


class OutputWriter:
    """
    Writes :class:`GeneratedFile` records below ``output_root``.

    Example:
        writer = OutputWriter(Path("out"))
        written = writer.write(report.files)
    """

    def __init__(self, output_root: Path):
        self.output_root = Path(output_root)

    def target_path(self, file: GeneratedFile) -> Path:
        return self.output_root.joinpath(*file.path.split("/"))

    def write_file(self, file: GeneratedFile) -> Path:
        """
        Write one file, creating parent directories as needed.

        Raises:
            OutputWriteError: If the file cannot be persisted
        """
        target = self.target_path(file)
        tmp_name: str | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
            with os.fdopen(fd, "w", encoding=file.encoding, newline="") as f:
                f.write(file.content)
            os.replace(tmp_name, target)
            tmp_name = None
        except (OSError, UnicodeError, LookupError) as e:
            raise OutputWriteError(
                f"Cannot write {file.path}: {e}",
                ErrorContext(phase="writing", path=file.path),
            ) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug("Wrote %s", target)
        return target

    def write(self, files: Iterable[GeneratedFile]) -> list[Path]:
        """
        Write every file in order.

        Stops at the first failure; files already written are left in place.

        Raises:
            OutputWriteError: If a file cannot be persisted
        """
        written = [self.write_file(file) for file in files]
        logger.info("Wrote %d files to %s", len(written), self.output_root)
        return written
