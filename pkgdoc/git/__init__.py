"""Working copy management for remote repositories."""

from .sync import FetchError, GitBackend, SyncResult, Synchronizer, VcsBackend

__all__ = ["FetchError", "GitBackend", "SyncResult", "Synchronizer", "VcsBackend"]
