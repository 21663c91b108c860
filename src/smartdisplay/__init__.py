"""Control plane for a single always-on smart display appliance."""

__version__ = "0.1.0"
