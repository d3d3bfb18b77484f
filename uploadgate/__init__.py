"""uploadgate — API-key gated image upload gateway backed by an object store."""

__version__ = "1.0.0"
