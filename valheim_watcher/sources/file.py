"""
Log file line source.

Reads a server log file once, or keeps following it as the server appends
to it. Following uses polling, handles truncation (log rotation, manual
clear) by starting over, and buffers partial lines until their newline
arrives.
"""
import asyncio
from pathlib import Path
from typing import AsyncIterator
import structlog
from .errors import SourceError

log = structlog.get_logger()


class FileLineSource:
    """
    Async iterator over the lines of a log file.

    Attributes:
        path: Path to the log file.
        follow: Keep polling for appended lines instead of stopping at EOF.
        poll_interval: Seconds between polls while following.
        offset: Byte offset of the next unread data.
        partial: Incomplete trailing line waiting for its newline.

    Example:
        >>> async for line in FileLineSource("server.log"):
        ...     handle(line)
    """

    def __init__(self, path: str | Path, follow: bool = False, poll_interval: float = 0.25):
        self.path = Path(path)
        self.follow = follow
        self.poll_interval = poll_interval
        self.offset = 0
        self.partial = ""
        self._stopped = False

    def stop(self):
        """Make a following source finish after its current poll."""
        self._stopped = True

    def _read_new_lines(self) -> list[str]:
        """Read complete lines appended since the last call."""
        if not self.path.exists():
            return []

        size = self.path.stat().st_size

        if size < self.offset:
            log.info("source.file_truncated", path=str(self.path))
            self.offset = 0
            self.partial = ""

        if size == self.offset:
            return []

        with self.path.open("rb") as f:
            f.seek(self.offset)
            data = f.read()
            self.offset += len(data)

        text = self.partial + data.decode("utf-8", errors="replace")
        lines = text.splitlines()

        if text.endswith(("\n", "\r")):
            self.partial = ""
        else:
            self.partial = lines.pop() if lines else ""

        return lines

    async def __aiter__(self) -> AsyncIterator[str]:
        if not self.follow and not self.path.exists():
            raise SourceError(f"Log file not found: {self.path}")

        log.info("source.file_opened", path=str(self.path), follow=self.follow)

        while True:
            for line in self._read_new_lines():
                yield line

            if not self.follow or self._stopped:
                break
            await asyncio.sleep(self.poll_interval)

        # Last line of a finished file may lack a newline
        if self.partial:
            line, self.partial = self.partial, ""
            yield line
