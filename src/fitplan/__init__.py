"""FitPlan API - AI-assisted workout plan generation."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("fitplan")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"
