from fastapi import HTTPException, status


class AppException(HTTPException):
    def __init__(self, code: str, message: str, status_code: int = 400, details: dict = None):
        self.error_code = code
        self.error_message = message
        self.error_details = details
        super().__init__(
            status_code=status_code,
            detail={
                "error": {
                    "code": code,
                    "message": message,
                    "details": details,
                }
            },
        )


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: str = None):
        details = {"entity": entity}
        if entity_id:
            details["id"] = entity_id
        super().__init__(
            code="NOT_FOUND",
            message=f"{entity} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class ForbiddenError(AppException):
    def __init__(self, message: str = "You are not allowed to perform this action"):
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class UnauthorizedError(AppException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ValidationError(AppException):
    def __init__(self, message: str, field: str = None):
        details = {"field": field} if field else None
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class InvalidScopeError(AppException):
    def __init__(self, message: str = "At least one verification activity must be selected"):
        super().__init__(
            code="INVALID_SCOPE",
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )


class InvalidStateError(AppException):
    def __init__(self, message: str, details: dict = None):
        super().__init__(
            code="INVALID_STATE",
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class InvalidStatusTransition(AppException):
    def __init__(self, current: str, target: str):
        super().__init__(
            code="INVALID_TRANSITION",
            message=f"Cannot change status from {current} to {target}",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"current": current, "target": target},
        )


class InvalidAmountError(AppException):
    def __init__(self, message: str = "Amount must be greater than zero", amount=None):
        super().__init__(
            code="INVALID_AMOUNT",
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"amount": str(amount)} if amount is not None else None,
        )


class PreconditionFailedError(AppException):
    def __init__(self, message: str, details: dict = None):
        super().__init__(
            code="PRECONDITION_FAILED",
            message=message,
            status_code=status.HTTP_412_PRECONDITION_FAILED,
            details=details,
        )


class ConflictError(AppException):
    def __init__(self, entity_id: str):
        super().__init__(
            code="CONFLICT",
            message="The verification was modified by another request, please retry",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": entity_id},
        )


class ServiceUnavailableError(AppException):
    def __init__(self, service: str):
        super().__init__(
            code="SERVICE_UNAVAILABLE",
            message=f"{service} is temporarily unavailable, please try again later",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
