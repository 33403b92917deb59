"""Strategic blueprint research pipeline."""

from .app import create_app
from .config import get_settings
from .pipeline import BlueprintPipeline

__all__ = ["BlueprintPipeline", "create_app", "get_settings"]
