"""Downstream impact analysis for dbt pull requests."""

__version__ = "0.3.0"
