"""Command-line interface for the photo sync engine."""
