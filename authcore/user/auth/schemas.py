from pydantic import Field

from authcore.core.schemas import Base


class SignInModel(Base):
    username: str = Field(min_length=1, max_length=60)
    password: str = Field(min_length=1)
