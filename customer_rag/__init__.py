"""Customer Retrieval Assistant: retrieval and query classification over customer profiles."""

__version__ = "0.1.0"
