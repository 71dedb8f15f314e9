"""diffview: orchestration core of a source-control diff view."""

__version__ = "0.1.0"
