"""Errors raised while validating a program or generating code.

Every error carries the qualified name of the offending entity
(``Service.Function``, a type name or a ``language/role`` pair) so the
source IDL can be located and fixed.
"""


class GenerationError(RuntimeError):
    """Base class for all generation-time failures."""

    def __init__(self, message: str, entity: str | None = None) -> None:
        super().__init__(message)
        self.entity = entity


class ValidationError(GenerationError):
    """Raised when a program violates a model invariant."""


class InvalidOptionError(GenerationError):
    """Raised when a priority or pool option has an unusable value."""


class DuplicateCodeError(GenerationError):
    """Raised when two entities derive the same task code."""

    def __init__(self, code: str, first: str, second: str) -> None:
        super().__init__(f"Task code {code} derived by both {first} and {second}", second)
        self.code = code
        self.first = first
        self.second = second


class UnknownTypeError(GenerationError):
    """Raised when a type has no spelling in the requested language."""

    def __init__(self, type_name: str, language: str, owner: str | None = None) -> None:
        where = f" (in {owner})" if owner else ""
        super().__init__(f"No {language} mapping for type {type_name}{where}", owner or type_name)
        self.type_name = type_name
        self.language = language


class MissingParamError(GenerationError):
    """Raised when a perf client is requested for a function without parameters."""

    def __init__(self, function: str) -> None:
        super().__init__(
            f"{function} has no parameters, cannot synthesize a perf test payload", function
        )


class UnknownFileRoleError(GenerationError):
    """Raised when no template is registered for a language/role pair."""

    def __init__(self, language: str, role: str) -> None:
        super().__init__(f"No template registered for {language}/{role}", f"{language}/{role}")
        self.language = language
        self.role = role
