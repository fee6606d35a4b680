"""Core module for toolbridge."""
