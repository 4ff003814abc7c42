"""
Directory Backup Tool

Copies or archives a source directory to one or more local or cloud
destinations in parallel. One failing destination never stops the others.
"""

__version__ = "1.0.0"
__author__ = "CLI Backup Tool"
__description__ = "Copy or archive a directory to many destinations in parallel"

from .config.settings import BackupSettings
from .engine.coordinator import FanOutCoordinator, RunResult

__all__ = ["BackupSettings", "FanOutCoordinator", "RunResult"]
