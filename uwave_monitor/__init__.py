"""
UWAVE Monitor package for reading UWAVE Bluetooth Low Energy sensors.

The package exposes the pieces used by the GUI client to discover sensors,
manage their connections, and decode incoming measurement payloads.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
