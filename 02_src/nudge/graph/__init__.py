"""Microsoft Graph access."""

from .client import GraphClient, GraphError, USER_SELECT

__all__ = ["GraphClient", "GraphError", "USER_SELECT"]
