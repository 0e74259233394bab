"""Toolkit for fuzzing web applications: inputs, filters, an HTTP runner, scrapers and reports."""

__version__ = "2.0.0"