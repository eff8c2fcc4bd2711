"""Application package: wires config, context and services together."""

from .agent import Agent

__all__ = ["Agent"]
