"""NodeLens - alert correlation and metrics enrichment for node diagnostics."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("nodelens")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
