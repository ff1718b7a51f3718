"""Core module - configuration, errors, models, storage and observability.

Shared by the compute operations, the ingestion pipeline and the API.
Storage backends are reached only through the ObjectStore and
RelationalIndex capabilities in core.storage.
"""

__version__ = "0.3.0"
