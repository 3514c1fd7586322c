"""Log files that rotate on a fixed period and purge old generations."""

from __future__ import annotations

import glob
import os
import threading
import time
from datetime import datetime, timedelta
from typing import BinaryIO

_EPOCH = datetime(1970, 1, 1)


class TimeRotatingWriter:
    """Binary writer that switches files every ``rotation_time``.

    ``app.log`` is written to ``app-YYYYMMDDHH.log``; ``app.log`` itself
    becomes a symbolic link to the file in use.  Files older than
    ``max_age`` are removed whenever a new file is opened.
    """

    def __init__(
        self,
        filename: str | os.PathLike[str],
        max_age: timedelta | None = timedelta(days=7),
        rotation_time: timedelta = timedelta(hours=1),
    ) -> None:
        if rotation_time <= timedelta(0):
            raise ValueError("rotation_time must be positive")
        self.filename = os.fspath(filename)
        self.link_name = self.filename
        self._base = self.filename.replace(".log", "")
        self.pattern = self._base + "-%Y%m%d%H.log"
        self.max_age = max_age
        self.rotation_time = rotation_time
        self._lock = threading.Lock()
        self._file: BinaryIO | None = None
        self._path: str | None = None

    @property
    def current_path(self) -> str | None:
        """Path of the file currently open for writing, if any."""
        return self._path

    def _target_path(self) -> str:
        local = datetime.fromtimestamp(time.time())
        periods = (local - _EPOCH) // self.rotation_time
        return (_EPOCH + periods * self.rotation_time).strftime(self.pattern)

    def write(self, data: bytes | str) -> int:
        """Write ``data`` to the file for the current period."""
        if isinstance(data, str):
            data = data.encode()
        with self._lock:
            path = self._target_path()
            if path != self._path or self._file is None:
                self._open(path)
            assert self._file is not None
            self._file.write(data)
            return len(data)

    def flush(self) -> None:
        """Flush the open file, if any."""
        with self._lock:
            if self._file is not None:
                self._file.flush()

    def close(self) -> None:
        """Close the open file; a later write opens it again."""
        with self._lock:
            if self._file is not None:
                self._file.close()
            self._file = None
            self._path = None

    def __enter__(self) -> "TimeRotatingWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _open(self, path: str) -> None:
        if self._file is not None:
            self._file.close()
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._file = open(path, "ab", buffering=0)
        self._path = path
        self._link(path)
        self._purge()

    def _link(self, path: str) -> None:
        link = self.link_name
        if os.path.abspath(link) == os.path.abspath(path):
            return
        link_dir = os.path.dirname(os.path.abspath(link))
        target = os.path.relpath(os.path.abspath(path), link_dir)
        tmp = link + "_symlink"
        try:
            if os.path.lexists(tmp):
                os.remove(tmp)
            os.symlink(target, tmp)
            os.replace(tmp, link)
        except OSError:
            pass

    def _purge(self) -> None:
        if self.max_age is None or self.max_age <= timedelta(0):
            return
        cutoff = time.time() - self.max_age.total_seconds()
        link = os.path.abspath(self.link_name)
        for candidate in glob.glob(glob.escape(self._base) + "-*.log"):
            if os.path.abspath(candidate) == link or os.path.islink(candidate):
                continue
            try:
                if os.path.getmtime(candidate) < cutoff:
                    os.remove(candidate)
            except OSError:
                continue


def rotate_writers(
    info_file: str | os.PathLike[str], err_file: str | os.PathLike[str]
) -> tuple[TimeRotatingWriter, TimeRotatingWriter]:
    """Return hourly-rotating writers for the info and error log files."""
    return TimeRotatingWriter(info_file), TimeRotatingWriter(err_file)