"""Custom domain exceptions for the application."""

# Stable, machine-readable error codes for API consumers.
NOT_FOUND = "NOT_FOUND"
DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"
VALIDATION_ERROR = "VALIDATION_ERROR"
FORBIDDEN = "FORBIDDEN"
UNAUTHORIZED = "UNAUTHORIZED"
CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
DUPLICATE_SLUG = "DUPLICATE_SLUG"
ALREADY_ATTACHED = "ALREADY_ATTACHED"
INVALID_FIELD_LIST = "INVALID_FIELD_LIST"
MAPPING_KEY_NOT_IN_VALIDATOR = "MAPPING_KEY_NOT_IN_VALIDATOR"
UNKNOWN_ENTITY_TYPE = "UNKNOWN_ENTITY_TYPE"
UNKNOWN_ENTITY_FIELD = "UNKNOWN_ENTITY_FIELD"
UNRESOLVABLE_CALLBACK = "UNRESOLVABLE_CALLBACK"
INVALID_RULE_PARAMS = "INVALID_RULE_PARAMS"
RULE_FAILED = "RULE_FAILED"
RULE_TIMEOUT = "RULE_TIMEOUT"


class DomainError(Exception):
    """Base exception for domain/business logic errors."""

    code = VALIDATION_ERROR


class NotFoundError(DomainError):
    """Raised when a requested resource does not exist."""

    code = NOT_FOUND


class DuplicateResourceError(DomainError):
    """Raised when attempting to create or update a resource that would violate a uniqueness constraint."""

    code = DUPLICATE_RESOURCE


class DomainValidationError(DomainError):
    """Raised when business rules or domain validation fail (e.g. invalid dates, missing required fields)."""

    code = VALIDATION_ERROR


class ForbiddenError(DomainError):
    """Raised when the acting user is not allowed to perform the operation."""

    code = FORBIDDEN


class UnauthorizedError(DomainError):
    """Raised when no acting user could be identified."""

    code = UNAUTHORIZED


class ConfigurationError(DomainError):
    """Raised when validator wiring cannot be turned into executable logic."""

    code = CONFIGURATION_ERROR


# Definition-time errors


class DuplicateSlugError(DuplicateResourceError):
    code = DUPLICATE_SLUG


class InvalidFieldListError(DomainValidationError):
    code = INVALID_FIELD_LIST


class UnresolvableCallbackError(ConfigurationError):
    code = UNRESOLVABLE_CALLBACK


class InvalidRuleParamsError(ConfigurationError):
    code = INVALID_RULE_PARAMS


# Attachment-time errors


class AlreadyAttachedError(DuplicateResourceError):
    code = ALREADY_ATTACHED


class MappingKeyNotInValidatorError(DomainValidationError):
    code = MAPPING_KEY_NOT_IN_VALIDATOR


class UnknownEntityTypeError(DomainValidationError):
    code = UNKNOWN_ENTITY_TYPE


class UnknownEntityFieldError(DomainValidationError):
    code = UNKNOWN_ENTITY_FIELD


# Runtime validation errors


class RuleFailure(DomainError):
    """Raised when an attached validator rejects a lifecycle operation.

    The enclosing operation is expected to roll back on this error.
    """

    code = RULE_FAILED

    def __init__(self, reason: str, validator_slug: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.validator_slug = validator_slug


class RuleTimeout(RuleFailure):
    """Raised when a rule does not return within the configured timeout."""

    code = RULE_TIMEOUT
