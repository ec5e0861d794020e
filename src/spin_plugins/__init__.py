"""spin-plugins - install and manage Spin CLI plugins."""

__version__ = "2.2.0"
