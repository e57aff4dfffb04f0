"""Catalog and clipboard errors."""

from shuk.common import ShukError


class CatalogError(ShukError):
    """Base error for catalog operations."""
    pass


class EmptyCatalogError(CatalogError):
    """The catalog has no entries to compute a statistic over."""
    pass


class CatalogOverflowError(CatalogError):
    """Aggregate size does not fit in an unsigned 64-bit integer."""
    pass


class ClipboardError(ShukError):
    """Copying to the system clipboard failed."""
    pass
