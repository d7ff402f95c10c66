"""Allows `python -m valheim_watcher <command>`."""
import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
