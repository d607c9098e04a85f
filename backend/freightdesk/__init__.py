"""FreightDesk order lifecycle and dispatch-distance service."""

__version__ = "1.0.0"
