"""Generic bulk-operation schedulers."""

from mwengine.bulk.scheduler import BatchResult, batch_operation, series_batch_operation

__all__ = ["BatchResult", "batch_operation", "series_batch_operation"]
