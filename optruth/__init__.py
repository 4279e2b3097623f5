"""Operational Truth: reconciles AI, template, calculator and manual project facts."""

__version__ = "0.1.0"
