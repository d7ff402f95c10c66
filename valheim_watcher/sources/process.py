"""Supervision of the dedicated server process."""
import asyncio
import signal
from pathlib import Path
from typing import AsyncIterator
import structlog
from .errors import SourceError

log = structlog.get_logger()

# Server lines can be long (stack traces, mod dumps)
STDOUT_LINE_LIMIT = 1024 * 1024


class ServerProcess:
    """
    Runs the server start script and streams its standard output.

    The script runs with bash from its own directory; stderr is discarded.
    Iterating the process yields stdout lines until the server exits.
    """

    def __init__(self, start_script: str | Path, shutdown_timeout: float = 60.0):
        self.start_script = Path(start_script)
        self.shutdown_timeout = shutdown_timeout
        self._process: asyncio.subprocess.Process | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def start(self):
        """
        Launch the server.

        Raises:
            SourceError: The script is missing or could not be executed
        """
        if not self.start_script.is_file():
            raise SourceError(
                f"Unable to launch Valheim dedicated server: {self.start_script} does not exist. "
                "Check the START_SCRIPT setting."
            )
        try:
            self._process = await asyncio.create_subprocess_exec(
                "bash",
                str(self.start_script),
                cwd=str(self.start_script.resolve().parent),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                limit=STDOUT_LINE_LIMIT,
            )
        except OSError as e:
            raise SourceError(f"Unable to launch Valheim dedicated server: {e}") from e
        log.info("server.started", pid=self._process.pid, script=str(self.start_script))

    async def __aiter__(self) -> AsyncIterator[str]:
        if self._process is None:
            await self.start()

        stdout = self._process.stdout
        while True:
            raw = await stdout.readline()
            if not raw:
                break
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")

        returncode = await self._process.wait()
        log.info("server.exited", pid=self._process.pid, returncode=returncode)

    async def shutdown(self) -> int | None:
        """
        Ask the server to stop with SIGINT and wait for it to exit.

        Returns:
            The exit code, or None if the server was never started
        """
        if self._process is None:
            return None
        if self._process.returncode is None:
            log.info("server.stopping", pid=self._process.pid)
            self._process.send_signal(signal.SIGINT)
            try:
                await asyncio.wait_for(self._process.wait(), timeout=self.shutdown_timeout)
            except asyncio.TimeoutError:
                log.warning("server.kill", pid=self._process.pid, timeout=self.shutdown_timeout)
                self._process.kill()
                await self._process.wait()
        return self._process.returncode
