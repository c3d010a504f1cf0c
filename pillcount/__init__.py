"""Pill-dosing permutation service."""

__version__ = "1.0.0"
