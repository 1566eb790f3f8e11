from datetime import datetime

from pydantic import EmailStr

from schemas.base import CamelModel


class UserOut(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr
    is_superadmin: bool
    created_at: datetime
