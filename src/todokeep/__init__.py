"""todokeep - a local, file-backed task tracker."""

__version__ = "0.1.0"
