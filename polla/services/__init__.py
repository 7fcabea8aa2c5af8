"""Business logic and external clients for Polla Partidos."""
