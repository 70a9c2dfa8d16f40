"""HTTP API module."""

from .main import create_app
from .service import ForecastService

__all__ = ["create_app", "ForecastService"]
