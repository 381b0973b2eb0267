"""Local flat-file archive of fetched windows."""

from .local_archive import ArchiveWindow, LocalArchive

__all__ = ["ArchiveWindow", "LocalArchive"]
