"""quakemap: earthquake feed, clustering and map marker toolkit."""

__version__ = "0.1.0"
