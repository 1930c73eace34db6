"""HTTP surface for the Albi Mall assistant (FastAPI)."""

from api.server import create_app

__all__ = ["create_app"]
