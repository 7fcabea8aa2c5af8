"""Configuration for Polla Partidos."""

from polla.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
