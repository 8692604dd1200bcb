from .base import RemoteIndexService
from .http import HttpIndexService

__all__ = ["RemoteIndexService", "HttpIndexService"]
