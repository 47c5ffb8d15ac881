"""Problem details error responses for FastAPI services."""

from problem_details.core.api_error import ApiError
from problem_details.core.builder import AuthFailureKind
from problem_details.core.builder import EnvelopeBuilder
from problem_details.core.builder import RequestContext
from problem_details.core.config import DuplicateHandlerPolicy
from problem_details.core.config import ProblemDetailsSettings
from problem_details.core.config import get_problem_details_settings
from problem_details.core.errors import AuthenticationError
from problem_details.core.errors import AuthorizationError
from problem_details.core.errors import DuplicateHandlerError
from problem_details.core.errors import HandlerNotFoundError
from problem_details.core.errors import ProblemDetailsError
from problem_details.core.errors import ValidationFailure
from problem_details.core.handlers import ProblemDetailsHandler
from problem_details.core.handlers import Resolution
from problem_details.core.handlers import register_problem_details
from problem_details.core.messages import CatalogMessageSource
from problem_details.core.messages import MessageSource
from problem_details.core.registry import HandlerRegistry
from problem_details.core.registry import exception_handler
from problem_details.schemas.problem import ProblemEnvelope
from problem_details.schemas.validation import FieldMessage
from problem_details.schemas.validation import ValidationErrorCollector

__all__ = [
    "ApiError",
    "AuthFailureKind",
    "AuthenticationError",
    "AuthorizationError",
    "CatalogMessageSource",
    "DuplicateHandlerError",
    "DuplicateHandlerPolicy",
    "EnvelopeBuilder",
    "FieldMessage",
    "HandlerNotFoundError",
    "HandlerRegistry",
    "MessageSource",
    "ProblemDetailsError",
    "ProblemDetailsHandler",
    "ProblemDetailsSettings",
    "ProblemEnvelope",
    "RequestContext",
    "Resolution",
    "ValidationErrorCollector",
    "ValidationFailure",
    "exception_handler",
    "get_problem_details_settings",
    "register_problem_details",
]
