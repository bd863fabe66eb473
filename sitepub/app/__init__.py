"""Command-line application and pipeline orchestration."""
