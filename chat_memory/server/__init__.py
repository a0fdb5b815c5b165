from .app import create_app
from .metrics import ServerMetrics

__all__ = ["create_app", "ServerMetrics"]
