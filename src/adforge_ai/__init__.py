"""AdForge AI - multi-provider dispatch layer for AI generation tasks."""

__version__ = "0.1.0"
