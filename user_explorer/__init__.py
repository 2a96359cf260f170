"""User data explorer: concurrent fetch, streaming ingest and offloaded processing demo."""

__version__ = "0.1.0"
