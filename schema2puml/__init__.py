"""Catalog metadata to PlantUML entity-relationship diagrams."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("schema2puml")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = ["__version__"]
