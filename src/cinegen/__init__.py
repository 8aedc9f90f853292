"""Generated creative assets from script data, with a tiered resource cache."""

__version__ = "0.1.0"
