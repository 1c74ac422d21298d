"""tillsync command line interface."""
from tillsync import __version__

__all__ = ["__version__"]
