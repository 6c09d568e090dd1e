"""
Result -> HTTP response mapping

Service results carry an error code instead of raising; this picks the
status code for them.
"""
from fastapi import status
from fastapi.responses import JSONResponse

from rolegate.schemas.results import ActionResult

ERROR_STATUS = {
    "authentication_required": status.HTTP_401_UNAUTHORIZED,
    "authorization_denied": status.HTTP_403_FORBIDDEN,
    "tier_not_eligible": status.HTTP_402_PAYMENT_REQUIRED,
    "validation_failed": status.HTTP_400_BAD_REQUEST,
    "persistence_failed": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "internal_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def result_response(result: ActionResult) -> JSONResponse:
    if result.success:
        status_code = status.HTTP_200_OK
    else:
        status_code = ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))
