"""Custom exceptions for vikagen.

This module defines the hierarchy of exceptions used throughout vikagen to
provide clear, actionable error messages for the different failure scenarios
of loading, resolving and generating a client.
"""

from collections.abc import Sequence


def _format_chain(chain: Sequence[str] | None) -> str:
    if not chain:
        return ''
    return ' (via ' + ' -> '.join(chain) + ')'


class VikagenError(Exception):
    """Base exception for all vikagen errors.

    All exceptions raised by vikagen inherit from this class, making it easy
    to catch every vikagen-related error with a single except clause.

    Example:
        try:
            codegen.generate()
        except VikagenError as e:
            print(f"vikagen error: {e}")
    """

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class SchemaError(VikagenError):
    """Base exception for schema-related errors.

    Structural schema errors are fatal for the whole run: no module is
    generated from a graph with a broken dependency.
    """

    pass


class SchemaLoadError(SchemaError):
    """Failed to load an OpenAPI document from a source.

    Attributes:
        source: The source path or URL that failed to load.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, source: str, cause: Exception | None = None):
        self.source = source
        self.cause = cause
        message = f"Failed to load schema from '{source}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)


class SchemaReferenceError(SchemaError):
    """A ``$ref`` points at a schema that does not exist or cannot be followed.

    Attributes:
        reference: The $ref string that could not be resolved.
        reason: Explanation of why the reference couldn't be resolved.
        schema_name: Fully-qualified id of the schema holding the reference.
        chain: The ``$ref`` chain that led to the offending schema.
    """

    def __init__(
        self,
        reference: str,
        reason: str | None = None,
        schema_name: str | None = None,
        chain: Sequence[str] | None = None,
    ):
        self.reference = reference
        self.reason = reason
        self.schema_name = schema_name
        self.chain = list(chain or [])
        message = f"Failed to resolve reference '{reference}'"
        if schema_name:
            message += f" in schema '{schema_name}'"
        message += _format_chain(self.chain)
        if reason:
            message += f': {reason}'
        super().__init__(message)


class UnsupportedSchemaError(SchemaError):
    """A schema has a shape that cannot be classified.

    Attributes:
        schema_name: Fully-qualified id of the offending schema.
        reason: What made the shape unrecognizable.
        chain: The ``$ref`` chain that led to the offending schema.
    """

    def __init__(
        self,
        schema_name: str,
        reason: str | None = None,
        chain: Sequence[str] | None = None,
    ):
        self.schema_name = schema_name
        self.reason = reason
        self.chain = list(chain or [])
        message = f"Unsupported schema '{schema_name}'"
        message += _format_chain(self.chain)
        if reason:
            message += f': {reason}'
        super().__init__(message)


class AmbiguousDiscriminatorError(SchemaError):
    """A discriminator value cannot be matched to exactly one union member.

    Attributes:
        schema_name: Fully-qualified id of the union schema.
        key: The discriminator mapping key that could not be resolved.
        chain: The ``$ref`` chain that led to the offending schema.
    """

    def __init__(
        self,
        schema_name: str,
        key: str,
        reason: str | None = None,
        chain: Sequence[str] | None = None,
    ):
        self.schema_name = schema_name
        self.key = key
        self.reason = reason
        self.chain = list(chain or [])
        message = (
            f"Ambiguous discriminator in schema '{schema_name}' for key '{key}'"
        )
        message += _format_chain(self.chain)
        if reason:
            message += f': {reason}'
        super().__init__(message)


class CodeGenerationError(VikagenError):
    """Error during code generation.

    Raised when building the intermediate representation or emitting code
    fails after the document was successfully resolved.

    Attributes:
        context: Additional context about what was being generated.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self, message: str, context: str | None = None, cause: Exception | None = None
    ):
        self.context = context
        self.cause = cause
        full_message = message
        if context:
            full_message = f'{message} (while generating {context})'
        if cause:
            full_message += f': {cause}'
        super().__init__(full_message)


class NamingCollisionError(CodeGenerationError):
    """Two declarations want the same emitted name.

    This error never escapes the IR builder: the name allocator catches it,
    logs it and picks a suffixed name instead.

    Attributes:
        name: The requested name.
        resolved: The name that was assigned instead.
        owner: The id of the schema that lost the requested name.
    """

    def __init__(self, name: str, resolved: str, owner: str | None = None):
        self.name = name
        self.resolved = resolved
        self.owner = owner
        message = f"Name '{name}' is already taken, using '{resolved}'"
        if owner:
            message += f" for '{owner}'"
        super().__init__(message)


class UnknownModuleError(CodeGenerationError):
    """An operation or selection refers to a module that is not generated.

    Attributes:
        module: The module that was requested.
        available: The modules that are known.
    """

    def __init__(self, module: str, available: Sequence[str] | None = None):
        self.module = module
        self.available = sorted(available or [])
        message = f"Unknown module '{module}'"
        if self.available:
            message += f'. Available modules: {", ".join(self.available)}'
        super().__init__(message)


class ConfigurationError(VikagenError):
    """Error in configuration.

    Attributes:
        config_path: The path to the configuration file, if applicable.
        field: The specific configuration field that is invalid.
    """

    def __init__(
        self, message: str, config_path: str | None = None, field: str | None = None
    ):
        self.config_path = config_path
        self.field = field
        full_message = message
        if config_path:
            full_message = f"{message} in '{config_path}'"
        if field:
            full_message += f' (field: {field})'
        super().__init__(full_message)


class OutputError(VikagenError):
    """Error writing generated output.

    Attributes:
        output_path: The path where output was being written.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, output_path: str, cause: Exception | None = None):
        self.output_path = output_path
        self.cause = cause
        message = f"Failed to write output to '{output_path}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)
