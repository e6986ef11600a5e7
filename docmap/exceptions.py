"""Custom exceptions for docmap.

Two families live here:

RECOVERABLE ERRORS (DocmapError):
Returned to callers from public operations so they can branch on the kind
of failure (no match, duplicate key, invalid input). Any other store error
(sqlite3.Error, pymongo.errors.PyMongoError) is not wrapped and propagates
unchanged.

CONFIGURATION ERRORS (ConfigurationError):
Programmer mistakes such as malformed field metadata, unregistered types or
a record used before it was bound to a model. These are never caught inside
docmap and should abort the current unit of work.
"""


class DocmapError(Exception):
    """Base exception for all recoverable docmap errors."""

    def __init__(self, message: str, details: dict | None = None):
        """Initialize exception with message and optional details.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(DocmapError):
    """Exception raised when a read expected at least one match and found none."""

    pass


class DuplicateError(DocmapError):
    """Exception raised when a unique index rejects an insert or update."""

    pass


class InvalidIdError(DocmapError):
    """Exception raised when a value is not a valid object id."""

    pass


class ValidationError(DocmapError):
    """Exception raised when a document fails validation.

    Attributes:
        errors: Every issue reported by the validator, in field order
    """

    def __init__(self, message: str, errors: list | None = None):
        """Initialize validation error.

        Args:
            message: Human-readable error message
            errors: Ordered list of ValidationIssue objects
        """
        errors = list(errors or [])
        super().__init__(
            message,
            details={"errors": [str(error) for error in errors]},
        )
        self.errors = errors

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        return f"{self.message}: " + "; ".join(str(error) for error in self.errors)


class ConfigurationError(Exception):
    """Base exception for programmer and wiring mistakes."""

    pass


class SchemaError(ConfigurationError):
    """Exception raised when a document type declares invalid field metadata."""

    pass


class RegistrationError(ConfigurationError):
    """Exception raised when a type name is not registered with the connection."""

    pass


class UnboundDocumentError(ConfigurationError):
    """Exception raised when a document is used before Model.new()/Model.bind()."""

    pass


class RelationShapeError(ConfigurationError):
    """Exception raised when a relation field holds a value of the wrong shape.

    Covers related documents that were never saved (no id) and values that
    are neither a document nor an object id.
    """

    pass


class MultiplicityError(ConfigurationError):
    """Exception raised when a query's multiplicity does not match its target."""

    pass


class PopulationError(ConfigurationError):
    """Exception raised when population names an unknown or non-relation field."""

    pass
