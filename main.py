"""Cloud Function Entry Point - Root Module.

This is the root-level entry point for Google Cloud Functions.
It imports from the reliefengine package.
"""

from reliefengine.main import relief_engine

__all__ = [
    "relief_engine",
]
