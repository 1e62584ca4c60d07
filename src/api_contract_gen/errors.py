"""Error taxonomy for contract analysis.

Every analysis error carries a stable error code, a human message and an
actionable suggestion. They are caught per route and method by the contract
generator and never abort a whole run.
"""


class ConfigError(Exception):
    """Raised when the project configuration cannot be loaded."""


class ContractWriteError(Exception):
    """Raised when the contract artifact cannot be written. Fatal for a run."""


class ContractLoadError(Exception):
    """Raised when a persisted contract is missing or malformed."""


class AnalysisError(Exception):
    """Base class for structured, per-route analysis failures."""

    kind = "AnalysisError"
    suggestions: dict[str, str] = {}
    default_suggestion = "Review the route definition and the code behind it."

    def __init__(self, message: str, code: str, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context or {}

    @property
    def suggestion(self) -> str:
        template = self.suggestions.get(self.code, self.default_suggestion)
        return template.format(**self.context)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "error_code": self.code,
            "message": self.message,
            "context": self.context,
            "suggestion": self.suggestion,
        }


class RouteAnalysisError(AnalysisError):
    kind = "RouteAnalysisError"
    suggestions = {
        "ROUTE_INVALID_ACTION": (
            "Verify the route definition. Controller handlers must use the format "
            "'package.module.ControllerClass@method'."
        ),
        "ROUTE_CONTROLLER_NOT_FOUND": (
            "Check that the controller '{controller}' is importable from the project root "
            "and that its module has no import-time errors."
        ),
        "ROUTE_METHOD_NOT_FOUND": (
            "Ensure the method '{method}' exists on '{controller}'. Method names are case-sensitive."
        ),
        "ROUTE_REFLECTION_FAILED": (
            "Check that the source of '{reference}' is available as a regular .py file "
            "and that its annotations can be evaluated."
        ),
    }
    default_suggestion = "Review the route configuration and ensure all controllers and methods exist."

    @classmethod
    def invalid_action(cls, action: str) -> "RouteAnalysisError":
        return cls(
            f"Invalid route action format: '{action}'. Expected 'Controller@method'.",
            "ROUTE_INVALID_ACTION",
            {"action": action},
        )

    @classmethod
    def controller_not_found(cls, controller: str, reason: str | None = None) -> "RouteAnalysisError":
        context = {"controller": controller}
        message = f"Controller class not found: '{controller}'."
        if reason:
            context["reason"] = reason
            message = f"Controller class not found: '{controller}' ({reason})."
        return cls(message, "ROUTE_CONTROLLER_NOT_FOUND", context)

    @classmethod
    def method_not_found(cls, controller: str, method: str) -> "RouteAnalysisError":
        return cls(
            f"Method '{method}' not found in controller '{controller}'.",
            "ROUTE_METHOD_NOT_FOUND",
            {"controller": controller, "method": method},
        )

    @classmethod
    def reflection_failed(cls, reference: str, reason: str) -> "RouteAnalysisError":
        return cls(
            f"Failed to reflect handler '{reference}': {reason}",
            "ROUTE_REFLECTION_FAILED",
            {"reference": reference, "reason": reason},
        )


class ValidationSchemaError(AnalysisError):
    kind = "ValidationSchemaError"
    suggestions = {
        "VALIDATOR_CLASS_NOT_FOUND": (
            "Check that the validator '{validator}' exists and is importable."
        ),
        "VALIDATOR_INSTANTIATION_FAILED": (
            "Validator '{validator}' must be constructible without arguments. "
            "Make constructor dependencies optional."
        ),
        "VALIDATOR_RULES_NOT_FOUND": (
            "Add a rules() method to '{validator}' returning a mapping of field to rules."
        ),
        "VALIDATOR_INVALID_RULES": (
            "Verify that '{validator}.rules()' runs without side effects and returns a mapping."
        ),
    }
    default_suggestion = "Review the validator class and its rules() method."

    @classmethod
    def class_not_found(cls, validator: str) -> "ValidationSchemaError":
        return cls(
            f"Validator class not found: '{validator}'.",
            "VALIDATOR_CLASS_NOT_FOUND",
            {"validator": validator},
        )

    @classmethod
    def instantiation_failed(cls, validator: str, reason: str) -> "ValidationSchemaError":
        return cls(
            f"Could not instantiate validator '{validator}': {reason}",
            "VALIDATOR_INSTANTIATION_FAILED",
            {"validator": validator, "reason": reason},
        )

    @classmethod
    def rules_not_found(cls, validator: str) -> "ValidationSchemaError":
        return cls(
            f"Validator '{validator}' has no rules() method.",
            "VALIDATOR_RULES_NOT_FOUND",
            {"validator": validator},
        )

    @classmethod
    def invalid_rules(cls, validator: str, reason: str) -> "ValidationSchemaError":
        return cls(
            f"Validator '{validator}' returned invalid rules: {reason}",
            "VALIDATOR_INVALID_RULES",
            {"validator": validator, "reason": reason},
        )


class ResourceAnalysisError(AnalysisError):
    kind = "ResourceAnalysisError"
    suggestions = {
        "RESOURCE_CLASS_NOT_FOUND": "Check that '{resource}' exists and is importable.",
        "RESOURCE_MODEL_NOT_FOUND": (
            "The serializer name should map to a model (UserResource -> User). "
            "Ensure '{model}' exists in the models namespace."
        ),
        "RESOURCE_FIXTURE_NOT_AVAILABLE": (
            "Give '{model}' a fixture() classmethod returning a lightweight, unsaved instance."
        ),
        "RESOURCE_FIXTURE_FAILED": (
            "Check the fixture of '{model}'. It must build an instance without "
            "a database or network connection."
        ),
        "RESOURCE_SERIALIZATION_FAILED": (
            "Ensure '{resource}' can serialize a fixture instance. "
            "Look for attributes the fixture leaves unset."
        ),
    }
    default_suggestion = "Review the serializer class and the model it wraps."

    @classmethod
    def class_not_found(cls, resource: str) -> "ResourceAnalysisError":
        return cls(
            f"Resource class not found: '{resource}'.",
            "RESOURCE_CLASS_NOT_FOUND",
            {"resource": resource},
        )

    @classmethod
    def model_not_found(cls, model: str, resource: str) -> "ResourceAnalysisError":
        return cls(
            f"Model '{model}' not found for resource '{resource}'.",
            "RESOURCE_MODEL_NOT_FOUND",
            {"model": model, "resource": resource},
        )

    @classmethod
    def fixture_not_available(cls, model: str, resource: str) -> "ResourceAnalysisError":
        return cls(
            f"Model '{model}' has no fixture factory.",
            "RESOURCE_FIXTURE_NOT_AVAILABLE",
            {"model": model, "resource": resource},
        )

    @classmethod
    def fixture_failed(cls, resource: str, model: str, reason: str) -> "ResourceAnalysisError":
        return cls(
            f"Factory failed for resource '{resource}' with model '{model}': {reason}",
            "RESOURCE_FIXTURE_FAILED",
            {"resource": resource, "model": model, "reason": reason},
        )

    @classmethod
    def serialization_failed(cls, resource: str, reason: str) -> "ResourceAnalysisError":
        return cls(
            f"Failed to serialize a fixture with '{resource}': {reason}",
            "RESOURCE_SERIALIZATION_FAILED",
            {"resource": resource, "reason": reason},
        )


class UnexpectedError(AnalysisError):
    kind = "UnexpectedError"
    default_suggestion = "Re-run with --detailed and --log to capture the underlying exception."

    @classmethod
    def wrap(cls, exc: BaseException, where: str) -> "UnexpectedError":
        return cls(
            f"Unexpected error while analyzing {where}: {exc}",
            "UNEXPECTED_ERROR",
            {"where": where, "exception": type(exc).__name__},
        )
