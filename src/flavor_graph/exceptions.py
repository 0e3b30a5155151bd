"""Exceptions raised by the flavor graph pipeline."""


class FlavorGraphError(Exception):
    """Base class for pipeline errors."""


class ConfigError(FlavorGraphError, ValueError):
    """Invalid or unreadable configuration (pipeline YAML, alias table, taxonomy)."""


class UnsupportedFileType(FlavorGraphError, ValueError):
    """Input file is neither a recognized record format nor a tabular format."""

    def __init__(self, path) -> None:
        super().__init__(f"Unsupported file type: {path}")
        self.path = path
