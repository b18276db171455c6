"""Task orchestration core for the AI Startup-in-a-Box agents."""

from importlib import metadata

try:
    __version__ = metadata.version("startup-box")
except metadata.PackageNotFoundError:  # pragma: no cover - fallback for dev
    __version__ = "0.0.0"

__all__ = ["__version__"]
