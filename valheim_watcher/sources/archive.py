"""Raw copy of everything the server printed."""
from datetime import datetime, timezone
from pathlib import Path
import structlog

log = structlog.get_logger()


class LogArchive:
    """
    Appends raw server output to a timestamped file.

    The file is named valheim-dedicated-server-<UTC ISO timestamp>.log and
    created inside `directory` when the archive is opened.
    """

    def __init__(self, directory: str | Path, started_at: datetime | None = None):
        started_at = started_at or datetime.now(timezone.utc)
        self.path = Path(directory) / f"valheim-dedicated-server-{started_at.isoformat()}.log"
        self._file = None

    def open(self) -> "LogArchive":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("a", encoding="utf-8")
        log.info("archive.opened", path=str(self.path))
        return self

    def write(self, line: str):
        if self._file is None:
            self.open()
        self._file.write(line.rstrip("\r\n") + "\n")

    def close(self):
        """Flush buffered output to disk and close the file."""
        if self._file is not None:
            self._file.flush()
            self._file.close()
            self._file = None
            log.info("archive.closed", path=str(self.path))

    def __enter__(self) -> "LogArchive":
        return self.open()

    def __exit__(self, *exc_info):
        self.close()
