"""Candle persistence for kline-cache."""

from kline_cache.storage.directory import Directory, FileHandle, LocalDirectory
from kline_cache.storage.shard_store import ShardStore

__all__ = [
    "Directory",
    "FileHandle",
    "LocalDirectory",
    "ShardStore",
]
