"""
I/O utilities for allure-watcher.

This module writes closed suites and their attachments into the results
directory. Writes are performed atomically by first writing to a temporary
file in the target directory and then renaming it into place, so a reader
watching the directory never sees a half-written result.

Functions
---------
atomic_write_bytes(path, data)
    Write raw bytes atomically to disk.
atomic_write_json(path, data, *, indent=2, encoding='utf-8')
    Write a JSON object atomically to disk.

Classes
-------
ResultsWriter
    Writes ``{uuid}-testsuite.json`` and ``{uuid}-attachment{ext}`` files.
"""

from __future__ import annotations
import json
import logging
import mimetypes
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, List, Mapping

from .core import Attachment, SuiteReport
from .utilities import _slugify

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Write bytes atomically to disk.

    A temporary file is created in the same directory as the target file,
    written to in full, flushed + fsynced, and then atomically renamed to
    the final path via os.replace.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile("wb", delete=False, dir=path.parent) as tmp:
            tmp_path = Path(tmp.name)
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())

        os.replace(tmp_path, path)
    finally:
        # If something failed before os.replace, clean up temp file
        if tmp_path is not None and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                pass


def atomic_write_json(
    path: Path,
    data: Mapping[str, Any],
    *,
    indent: int = 2,
    encoding: str = "utf-8",
) -> None:
    """Write a JSON object atomically to disk (see :func:`atomic_write_bytes`)."""
    text = json.dumps(data, indent=indent, ensure_ascii=False, default=str)
    atomic_write_bytes(path, text.encode(encoding))


def _extension(att: Attachment) -> str:
    if not att.mime_type:
        return ".png" if att.content.startswith(b"\x89PNG") else ""
    return mimetypes.guess_extension(att.mime_type) or ""


class ResultsWriter:
    """Persist suites into a results directory.

    Parameters
    ----------
    output_dir : str or Path
        Target directory; created on first write.

    Examples
    --------
    >>> writer = ResultsWriter("allure-results")
    >>> writer.write_suite(suite)  # doctest: +SKIP
    PosixPath('allure-results/1c9e...-testsuite.json')
    """

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir)

    def write_attachment(self, att: Attachment) -> Path:
        """Write the attachment payload and record its file name as ``source``."""
        if att.source:
            return self.output_dir / att.source
        slug = _slugify(att.name) or "attachment"
        name = f"{uuid.uuid4()}-{slug}-attachment{_extension(att)}"
        path = self.output_dir / name
        atomic_write_bytes(path, att.content)
        att.source = name
        return path

    def write_suite(self, suite: SuiteReport) -> Path:
        """Write every attachment of ``suite`` and then the suite JSON."""
        for att in suite.iter_attachments():
            self.write_attachment(att)
        path = self.output_dir / f"{uuid.uuid4()}-testsuite.json"
        atomic_write_json(path, suite.to_json_dict())
        logger.info(f"wrote suite {suite.name!r} ({len(suite.test_cases)} test case(s)) to {path}")
        return path

    def write_suites(self, suites: List[SuiteReport]) -> List[Path]:
        return [self.write_suite(s) for s in suites]
