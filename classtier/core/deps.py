# classtier/core/deps.py
import uuid

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classtier.core.context import get_request
from classtier.core.exceptions import AuthenticationRequired, AuthorizationError, NotFound
from classtier.core.security import SecurityService
from classtier.db.models.database import Classes, User
from classtier.db.sesson import get_session


class AuthorizationService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        security: SecurityService = Depends(SecurityService),
    ):
        self.db = db
        self.security = security

    @staticmethod
    def _read_token() -> str | None:
        """Ưu tiên cookie access_token, sau đó header Authorization: Bearer."""
        request = get_request()
        token = request.cookies.get("access_token")
        if token:
            return token
        header = request.headers.get("authorization")
        if header and header.lower().startswith("bearer "):
            return header.split(" ", 1)[1].strip() or None
        return None

    async def get_current_user(self) -> User:
        token = self._read_token()
        if not token:
            raise AuthenticationRequired()

        try:
            payload = await self.security.decode_access_token(token)
            user_id = uuid.UUID(str(payload.get("sub")))
        except ValueError:
            raise AuthenticationRequired("Phiên đăng nhập không hợp lệ hoặc đã hết hạn")

        user = await self.db.get(User, user_id)
        if not user:
            raise AuthenticationRequired("Phiên đăng nhập không hợp lệ hoặc đã hết hạn")
        return user

    async def require_class_teacher(self, user: User, class_id: uuid.UUID) -> Classes:
        """User phải là giáo viên (teacher_id) của lớp."""
        class_ = await self.db.get(Classes, class_id)
        if not class_:
            raise NotFound("Lớp học không tồn tại")
        if class_.teacher_id != user.id:
            raise AuthorizationError("Bạn không có quyền chỉnh sửa cài đặt gói")
        return class_


async def get_current_user(
    authorization: AuthorizationService = Depends(AuthorizationService),
) -> User:
    """Dependency: xác thực chạy trước khi FastAPI kiểm tra body."""
    return await authorization.get_current_user()
