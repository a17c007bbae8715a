"""Command-line interface for the Warera client."""
