"""Reusable building blocks for the tracker.

Each module is a self-contained pattern the construction vertical builds
on: planning rules, task workflow states, the async repository layer, and
dataclass-based domain configuration.
"""
