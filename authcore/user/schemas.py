from authcore.core.schemas import Base
from authcore.user.enums import UserRole


class UserProfileViewModel(Base):
    id: int
    username: str
    nickname: str
    role: UserRole
