"""Sample FastAPI application wired with problem details error handling."""

from fastapi import FastAPI
from pydantic import BaseModel
from pydantic import Field

from problem_details.core.api_error import ApiError
from problem_details.core.errors import AuthenticationError
from problem_details.core.errors import AuthorizationError
from problem_details.core.handlers import register_problem_details
from problem_details.schemas.validation import ValidationErrorCollector


class ItemCreate(BaseModel):
    """Payload used to exercise request validation."""

    name: str = Field(min_length=1)
    quantity: int = Field(ge=1)


app = FastAPI(title="Problem Details Sample")
register_problem_details(app)


@app.get("/health")
def health() -> dict[str, str]:
    """Health check stub endpoint for service readiness."""
    return {"status": "ok"}


@app.get("/bad-request")
def bad_request() -> None:
    raise ApiError.bad_request("Test exception")


@app.get("/bad-request-by-extension")
def bad_request_by_extension() -> None:
    raise (
        ApiError.status(400)
        .title("This is a test exception")
        .type("https://example.com/errors/test-exception")
        .instance("https://example.com/errors/test-exception/1")
        .extension("field1", "value1")
        .extension("field2", "value2")
        .detail("This is a test exception")
    )


@app.get("/endpoint-with-param")
def endpoint_with_param(param: str) -> dict[str, str]:
    return {"param": param}


@app.post("/items", status_code=201)
def create_item(payload: ItemCreate) -> ItemCreate:
    """Create an item; business rule failures are reported through the validation collector."""
    validations = ValidationErrorCollector()
    if payload.name.lower() == "reserved":
        validations.add_field_error("name", "Name is reserved")
    if payload.quantity > 100:
        validations.add_field_error("quantity", "Quantity exceeds stock")
        validations.add_global_error("Order cannot be fulfilled")
    validations.raise_if_has_errors()
    return payload


@app.get("/secured")
def secured() -> None:
    raise AuthenticationError("Full authentication is required", headers={"WWW-Authenticate": "Bearer"})


@app.get("/admin")
def admin() -> None:
    raise AuthorizationError("Access Denied")


@app.get("/failure")
def failure() -> None:
    raise RuntimeError("db timeout")


@app.get("/conflict-with-reserved-extension")
def conflict_with_reserved_extension() -> None:
    raise ApiError.status(409).extension("title", "oops").detail("conflict")


@app.get("/stored-item")
def stored_item() -> ItemCreate:
    """Load an item whose stored data no longer satisfies the model."""
    return ItemCreate.model_validate({"name": "", "quantity": 0})
