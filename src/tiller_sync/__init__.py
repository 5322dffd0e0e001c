"""Keep a local SQLite datastore and a Tiller Google Sheet in agreement."""

__version__ = "0.3.0"
