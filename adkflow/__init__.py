"""Agents, composite workflows, artifact storage and an HTTP workflow API."""

__version__ = "0.1.0"