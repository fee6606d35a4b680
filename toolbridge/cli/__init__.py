"""Command-line interface for toolbridge."""
