from typing import Optional


class MetadataError(Exception):
    """Base class for every failure that aborts a metadata extraction run."""

    def __init__(self, message: str, source_text: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source_text = source_text

    def __str__(self):
        if self.source_text:
            return f"{self.message}\n\n{self.source_text}"
        return self.message


class InvalidMetatagsError(MetadataError):
    pass


class ElementDeclarationError(MetadataError):
    pass


class ActivityDeclarationError(MetadataError):
    pass


class SymbolResolutionError(MetadataError):
    pass
