"""dotinstall — declarative installer for a Wayland desktop profile."""

__version__ = "0.1.0"
