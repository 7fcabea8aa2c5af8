"""HTTP API for Polla Partidos."""
