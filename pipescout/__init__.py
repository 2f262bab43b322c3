"""Pipeline page discovery, acquisition and quota-governed extraction."""

__version__ = "0.1.0"
