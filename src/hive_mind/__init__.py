"""Drive agent CLIs against GitHub pull requests with live PR-comment updates."""

__version__ = "0.1.0"
