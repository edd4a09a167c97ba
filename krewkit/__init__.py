"""Read, validate, download and unpack kubectl plugin manifests and archives from a plugin index."""

__version__ = "0.1.0"

__all__ = [
    "commands",
    "download",
    "environment",
    "formatting",
    "gitutil",
    "info",
    "manifest",
    "overview",
    "scanner",
    "validate_manifest",
    "validation",
]