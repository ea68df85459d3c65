"""Offline-capable client for the StockPro API."""

from stockpro.client.cache import ClientCache, JsonFileStorage
from stockpro.client.connectivity import CHECKING, OFFLINE, ONLINE, ConnectivityState
from stockpro.client.http import ApiClient, ApiUnavailableError, ClientError
from stockpro.client.sync import ClientViews, StockClient, SyncReport

__all__ = [
    "ApiClient",
    "ApiUnavailableError",
    "CHECKING",
    "ClientCache",
    "ClientError",
    "ClientViews",
    "ConnectivityState",
    "JsonFileStorage",
    "OFFLINE",
    "ONLINE",
    "StockClient",
    "SyncReport",
]
