"""ProblemDetails codec."""

from pydantic import ValidationError

from ..domain.errors import ProblemDetailsDecodeError
from ..domain.models import ProblemDetails


def decode(body: bytes) -> ProblemDetails:
    """Decode a ProblemDetails body.

    Only ``success, type, title, status, detail, code, retryable`` are
    required; absent optional fields decode to None.

    Raises:
        ProblemDetailsDecodeError: body is not JSON or misses a required field
    """
    if not body:
        raise ProblemDetailsDecodeError("Empty body")
    try:
        return ProblemDetails.model_validate_json(body)
    except ValidationError as e:
        raise ProblemDetailsDecodeError(str(e)) from e


def encode(problem: ProblemDetails) -> bytes:
    """Encode a ProblemDetails in its wire form, omitting absent fields."""
    return problem.model_dump_json(by_alias=True, exclude_none=True).encode()
