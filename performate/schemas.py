from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


AttendanceStatusLiteral = Literal['Present', 'Absent', 'Hospital', 'Program', 'Reported']


class SignupRequest(BaseModel):
    email: str
    password: str
    full_name: str
    short_form: str


class SigninRequest(BaseModel):
    email: str
    password: str


class StudentCreate(BaseModel):
    name: str
    roll_number: str
    class_name: str = Field(alias='class')
    photo_url: str | None = None

    class Config:
        populate_by_name = True


class StudentUpdate(BaseModel):
    name: str | None = None
    roll_number: str | None = None
    class_name: str | None = Field(default=None, alias='class')
    photo_url: str | None = None

    class Config:
        populate_by_name = True


class ClassCreate(BaseModel):
    name: str


class ClassUpdate(BaseModel):
    name: str | None = None
    is_active: bool | None = None


class TallyCreateRequest(BaseModel):
    student_id: int
    count: int | None = None
    reason_id: int | None = None
    reason: str | None = None
    class_name: str | None = Field(default=None, alias='class')
    mentor_short_form: str | None = None

    class Config:
        populate_by_name = True


class StarCreateRequest(TallyCreateRequest):
    source: Literal['manual', 'morning_bliss'] = 'manual'


class ReasonWrite(BaseModel):
    reason: str
    value: int | None = None


class ReasonImportRequest(BaseModel):
    content: str
    format: Literal['csv', 'json'] = 'csv'


class DirectorMessageCreate(BaseModel):
    title: str
    message: str


class MorningBlissCreateRequest(BaseModel):
    student_id: int
    class_name: str | None = Field(default=None, alias='class')
    topic: str
    score: float
    evaluated_by: str
    photo_urls: list[str] = Field(default_factory=list)
    entry_date: date | None = Field(default=None, alias='date')
    is_topper: bool | None = None
    is_daily_winner: bool = False

    class Config:
        populate_by_name = True


class WinnerUpdateRequest(BaseModel):
    is_daily_winner: bool


class AttendanceMarkRequest(BaseModel):
    student_id: int
    class_name: str = Field(alias='class')
    status: AttendanceStatusLiteral
    attendance_date: date | None = Field(default=None, alias='date')
    prayer: str | None = None
    reason: str | None = None

    class Config:
        populate_by_name = True


class AttendanceBulkRequest(BaseModel):
    records: list[AttendanceMarkRequest]
