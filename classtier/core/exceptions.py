from fastapi import HTTPException


class AuthenticationRequired(HTTPException):
    def __init__(self, detail: str = "Vui lòng đăng nhập để tiếp tục"):
        super().__init__(status_code=401, detail=detail)


class ValidationFailed(HTTPException):
    def __init__(self, detail: str = "Dữ liệu không hợp lệ"):
        super().__init__(status_code=400, detail=detail)


class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Bạn không có quyền thực hiện thao tác này"):
        super().__init__(status_code=403, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Không tìm thấy dữ liệu"):
        super().__init__(status_code=404, detail=detail)


class BusinessRuleViolation(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


class PaymentAlreadyProcessed(HTTPException):
    def __init__(self, detail: str = "Giao dịch đã được xử lý trước đó"):
        super().__init__(status_code=409, detail=detail)


class UnexpectedError(HTTPException):
    def __init__(self, detail: str = "Đã xảy ra lỗi, vui lòng thử lại sau"):
        super().__init__(status_code=500, detail=detail)
