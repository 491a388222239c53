"""Solana to Base bridge transaction construction."""

from importlib import metadata


def __getattr__(name: str) -> str:
    """Expose the package version via ``twinbridge.__version__``."""
    if name == "__version__":
        try:
            return metadata.version("twinbridge")
        except metadata.PackageNotFoundError:
            return "0.0.0"
    raise AttributeError(name)


__all__ = ["__version__"]
