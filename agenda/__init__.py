"""Agenda service: persona directory with friend-graph integrity."""

__version__ = "1.0.0"
