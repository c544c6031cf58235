"""Exceptions raised by the print engine."""


class PrintEngineError(Exception):
    """Base class for print engine failures."""


class InvalidDocumentError(PrintEngineError):
    """The document JSON is malformed (missing printSpec/pages, bad field)."""

    def __init__(self, message, field=None):
        self.field = field
        if field:
            message = f"{field}: {message}"
        super().__init__(message)


class InvalidGeometryError(PrintEngineError):
    """A required geometry field is missing or non-finite."""

    def __init__(self, element_id, field, value=None):
        self.element_id = element_id
        self.field = field
        self.value = value
        super().__init__(f"Element '{element_id}' has invalid {field}: {value!r}")


class UnknownPageError(PrintEngineError):
    def __init__(self, page_id, available=()):
        self.page_id = page_id
        self.available = list(available)
        super().__init__(f"Page '{page_id}' not found in document (pages: {', '.join(self.available) or 'none'})")


class AssetError(PrintEngineError):
    """An asset reference could not be resolved or decoded."""


class TemplateError(PrintEngineError):
    """Unknown template id or a code-target fraction outside [0, 1]."""


class CompositeError(PrintEngineError):
    """The code target rectangle does not fit inside the design raster."""
