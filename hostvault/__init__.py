"""HostVault - encrypted SSH credential vault."""

__version__ = "1.0.0"
__all__ = ["__version__"]
