"""Civic Guard: trust and safety pipeline for citizen reports and chat."""

__version__ = "0.1.0"
