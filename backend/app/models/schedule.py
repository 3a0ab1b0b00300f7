# 파일 위치: backend/app/models/schedule.py

import re
import uuid
from datetime import date, datetime, timezone
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


BlockType = Literal["study", "break", "exercise", "other"]
Priority = Literal["low", "medium", "high"]
Frequency = Literal["daily", "weekly", "monthly"]
ExceptionAction = Literal["skip", "modify"]

# H:MM 또는 HH:MM (24시간제)
TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_time(v: str) -> str:
    """
    "9:05" -> "09:05" 처럼 두 자리 시각 문자열로 정규화합니다.
    형식이 틀리면 ValueError.
    """
    if not isinstance(v, str) or not TIME_PATTERN.match(v.strip()):
        raise ValueError("time must be in HH:MM format")
    hours, minutes = v.strip().split(":")
    return f"{int(hours):02d}:{minutes}"


def to_minutes(hhmm: str) -> int:
    """
    "HH:MM" -> 자정 기준 분(minute) 오프셋
    """
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def coerce_date(v):
    """
    ISO8601 datetime 문자열/객체가 들어와도 날짜 부분만 사용합니다.
    """
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, str) and len(v.strip()) > 10:
        return datetime.fromisoformat(v.strip().replace("Z", "+00:00")).date()
    return v


def _strip_and_reject_blank(v, field_name: str):
    if not isinstance(v, str):
        return v
    stripped = v.strip()
    if stripped == "":
        raise ValueError(f"{field_name} must not be blank")
    return stripped


def _strip_to_none(v):
    if not isinstance(v, str):
        return v
    s = v.strip()
    return s or None


class ModifiedTimeBlock(BaseModel):
    """
    예외(modify) 날짜에 원래 블록 대신 쓰이는 임시 블록.
    특정 날짜에 바로 적용되므로 요일 필드가 없습니다.
    """
    model_config = ConfigDict(frozen=True)

    start_time: str
    end_time: str
    subject: str
    type: BlockType = "study"

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return normalize_time(v)

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, v: str) -> str:
        return _strip_and_reject_blank(v, "subject")


class TimeBlockBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str
    end_time: str
    subject: str
    task_id: Optional[str] = None  # 외부 Task 참조 (opaque)
    type: BlockType = "study"
    priority: Priority = "medium"
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return normalize_time(v)

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, v: str) -> str:
        return _strip_and_reject_blank(v, "subject")

    @field_validator("task_id", "notes", mode="before")
    @classmethod
    def validate_optional_text(cls, v):
        return _strip_to_none(v)


class TimeBlock(TimeBlockBase):
    """
    스케줄에 포함되는 하나의 요일별 시간 구간.
    개별 삭제를 위해 자체 id를 가집니다.
    """
    id: str = Field(default_factory=_new_id)


class RecurrenceRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_recurring: bool = False
    frequency: Frequency = "weekly"
    start_date: date
    end_date: Optional[date] = None
    # weekly 일 때만 의미 있음 (블록의 요일과는 독립적)
    days_of_week: Tuple[int, ...] = ()

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_dates(cls, v):
        return coerce_date(v)

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: Tuple[int, ...]) -> Tuple[int, ...]:
        for day in v:
            if day < 0 or day > 6:
                raise ValueError("days_of_week entries must be 0-6")
        return tuple(sorted(set(v)))

    @model_validator(mode="after")
    def validate_range(self) -> "RecurrenceRule":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ScheduleException(BaseModel):
    """
    특정 날짜 하나에 대한 예외 (skip: 건너뜀, modify: 블록 교체)
    """
    model_config = ConfigDict(frozen=True)

    date: date
    reason: str
    action: ExceptionAction = "skip"
    modified_time_blocks: Optional[Tuple[ModifiedTimeBlock, ...]] = None

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v):
        return coerce_date(v)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return _strip_and_reject_blank(v, "reason")


class Schedule(BaseModel):
    """
    MongoDB의 'schedules' 컬렉션에 저장되는 완전한 형태의 데이터 모델입니다.
    한 유저가 소유하며, 내부의 블록/반복 규칙/예외는 모두 이 문서에 포함됩니다.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=_new_id, alias="_id")
    user_id: str
    name: str
    description: Optional[str] = None
    is_active: bool = True
    time_blocks: Tuple[TimeBlock, ...]
    recurring: RecurrenceRule
    exceptions: Tuple[ScheduleException, ...] = ()
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Occurrence(BaseModel):
    """
    반복 규칙 + 예외를 적용한 실제 달력 날짜 하나의 일정
    """
    model_config = ConfigDict(frozen=True)

    date: date
    day_of_week: int
    time_blocks: Tuple[TimeBlock | ModifiedTimeBlock, ...]
    exception: Optional[ScheduleException] = None

    @property
    def is_modified(self) -> bool:
        return self.exception is not None and self.exception.action == "modify"
