"""Lifeline: rule/event engine for a day-tick life simulation."""

__version__ = "0.1.0"
