from pydantic import EmailStr, Field
from datetime import datetime
from typing import Optional

from exampilot.schemas import CamelModel


class StudentBase(CamelModel):
    student_id: str = Field(min_length=1, max_length=80)
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)


class StudentCreate(StudentBase):
    password: str = Field(min_length=6)


class StudentLogin(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class Student(StudentBase):
    id: str
    created_at: Optional[datetime] = None


class AdminCreate(CamelModel):
    admin_id: str = Field(min_length=1, max_length=80)
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)


class AdminLogin(CamelModel):
    admin_id: str = Field(min_length=1)
    password: str = Field(min_length=1)


class Admin(CamelModel):
    id: str
    admin_id: str
    # ブートストラップ管理者のメールはローカルドメインのため EmailStr にしない
    email: str
    first_name: str
    last_name: str
    created_at: Optional[datetime] = None
