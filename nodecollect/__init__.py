"""Collectors that read Linux /proc and /sys and turn them into node metrics."""

__version__ = "0.1.0"