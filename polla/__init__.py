"""Polla Partidos: betting-window coordination service."""

__version__ = "0.1.0"
