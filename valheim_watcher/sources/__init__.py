"""Where server log lines come from, and where raw copies go."""
from .errors import SourceError
from .file import FileLineSource
from .process import ServerProcess
from .archive import LogArchive

__all__ = ["SourceError", "FileLineSource", "ServerProcess", "LogArchive"]
