"""Build a static blog from Markdown documents and deploy it."""

__version__ = "0.1.0"
