from vidshare.client.api import VidshareClient
from vidshare.client.state import WatchState
from vidshare.client.watch import WatchSession

__all__ = ["VidshareClient", "WatchState", "WatchSession"]
