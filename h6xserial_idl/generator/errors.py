"""Errors raised while loading and validating an IR document."""


class ValidationError(RuntimeError):
    """Raised when IR validation fails.

    ``path`` is the dotted location of the offending node (message name
    followed by struct field names), ``key`` the IR key at fault, if any.
    """

    def __init__(self, path: str, detail: str, key: str | None = None):
        self.path = path
        self.detail = detail
        self.key = key
        super().__init__(f"{path}: {detail}" if path else detail)


class MissingFieldError(ValidationError):
    """A required key is absent."""


class FieldTypeError(ValidationError):
    """A key is present but holds the wrong JSON type."""


class UnknownPrimitiveError(ValidationError):
    """A type string names no known primitive."""


class UnknownEndianError(ValidationError):
    """An endianness string is not little/le/big/be."""


class RangeError(ValidationError):
    """A numeric value lies outside its allowed range."""


class MalformedError(ValidationError):
    """The document is structurally invalid."""


class CatalogError(ValidationError):
    """Several validation errors were found in one document."""

    def __init__(self, errors: list[ValidationError]):
        self.errors = errors
        lines = "\n".join(f"  {error}" for error in errors)
        super().__init__("", f"{len(errors)} validation errors:\n{lines}")


class TemplateNotFoundError(RuntimeError):
    """Raised when a bundled code template cannot be read."""
