"""Room directory: tiered search and keyboard navigation over a room hierarchy."""

from roomfinder.api import JsonFileStore, RoomStoreApi
from roomfinder.controller import SearchNavigateController
from roomfinder.protocols import CommitSink, HierarchyFetcher, KeyValueStorage, LeafSearcher

__all__ = [
    "CommitSink",
    "HierarchyFetcher",
    "JsonFileStore",
    "KeyValueStorage",
    "LeafSearcher",
    "RoomStoreApi",
    "SearchNavigateController",
]
