# 파일 위치: backend/app/schemas/schedule.py

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.schedule import (
    ExceptionAction,
    Frequency,
    ModifiedTimeBlock,
    RecurrenceRule,
    ScheduleException,
    TimeBlock,
    TimeBlockBase,
    coerce_date,
    to_minutes,
)


def _check_time_range(start_time: str, end_time: str) -> None:
    if to_minutes(start_time) >= to_minutes(end_time):
        raise ValueError("end_time must be after start_time")


# --- API 요청(Request) 스키마 ---

class TimeBlockCreate(TimeBlockBase):
    """
    [요청] PUT /schedules/{schedule_id}/time-blocks, 그리고 생성/수정 시 timeBlocks 항목
    블록 id 는 서버에서 발급합니다.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    @model_validator(mode="after")
    def validate_range(self) -> "TimeBlockCreate":
        _check_time_range(self.start_time, self.end_time)
        return self

    def to_block(self) -> TimeBlock:
        return TimeBlock(**self.model_dump())


class ModifiedTimeBlockCreate(ModifiedTimeBlock):
    @model_validator(mode="after")
    def validate_range(self) -> "ModifiedTimeBlockCreate":
        _check_time_range(self.start_time, self.end_time)
        return self


class RecurrenceCreate(BaseModel):
    is_recurring: bool = False
    frequency: Frequency = "weekly"
    start_date: date
    end_date: Optional[date] = None
    days_of_week: List[int] = Field(default_factory=list)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_dates(cls, v):
        return coerce_date(v)

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("Day of week must be 0-6")
        return v

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(**self.model_dump())


class ExceptionCreate(BaseModel):
    """
    [요청] PUT /schedules/{schedule_id}/exceptions
    같은 날짜의 예외가 이미 있으면 교체됩니다.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: date
    reason: str = Field(..., min_length=1)
    action: ExceptionAction = "skip"
    modified_time_blocks: Optional[List[ModifiedTimeBlockCreate]] = None

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v):
        return coerce_date(v)

    def to_exception(self) -> ScheduleException:
        blocks = None
        if self.modified_time_blocks is not None:
            blocks = [ModifiedTimeBlock(**b.model_dump()) for b in self.modified_time_blocks]
        return ScheduleException(
            date=self.date,
            reason=self.reason,
            action=self.action,
            modified_time_blocks=blocks,
        )


class ScheduleCreate(BaseModel):
    """
    [요청] POST /schedules
    새로운 주간 스케줄을 생성할 때 클라이언트가 보내는 데이터 구조입니다.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    time_blocks: List[TimeBlockCreate] = Field(..., min_length=1)
    recurring: RecurrenceCreate
    exceptions: List[ExceptionCreate] = Field(default_factory=list)


class ScheduleUpdate(BaseModel):
    """
    [요청] PUT /schedules/{schedule_id}
    모든 필드는 선택 사항(Optional)입니다. 보낸 필드만 변경됩니다.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    time_blocks: Optional[List[TimeBlockCreate]] = Field(None, min_length=1)
    recurring: Optional[RecurrenceCreate] = None
    exceptions: Optional[List[ExceptionCreate]] = None
    is_active: Optional[bool] = None

    def to_changes(self) -> dict:
        """
        실제로 전송된 필드만 코어 타입으로 변환합니다.
        """
        changes = {}
        for field in self.model_fields_set:
            value = getattr(self, field)
            if field == "time_blocks" and value is not None:
                value = [b.to_block() for b in value]
            elif field == "recurring" and value is not None:
                value = value.to_rule()
            elif field == "exceptions" and value is not None:
                value = [e.to_exception() for e in value]
            changes[field] = value
        return changes


# --- API 응답(Response) 스키마 ---

class TimeBlockRead(BaseModel):
    id: str
    day_of_week: int
    start_time: str
    end_time: str
    subject: str
    task_id: Optional[str] = None
    type: str
    priority: str
    notes: Optional[str] = None


class ScheduleRead(BaseModel):
    """
    [응답] GET /schedules, POST /schedules 등 조회/생성 성공 시
    저장된 스케줄 + 파생 값(has_conflicts, weekly_study_minutes)을 반환합니다.
    """
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    time_blocks: List[TimeBlockRead]
    recurring: RecurrenceRule
    exceptions: List[ScheduleException]
    created_at: datetime
    updated_at: datetime
    has_conflicts: bool
    weekly_study_minutes: int


class ConflictRead(BaseModel):
    day: int
    conflicting_blocks: List[TimeBlockRead]


class ConflictReport(BaseModel):
    """
    [응답] GET /schedules/{schedule_id}/conflicts
    """
    has_conflicts: bool
    conflicts: List[ConflictRead] = Field(default_factory=list)


class OccurrenceRead(BaseModel):
    """
    [응답] GET /schedules/{schedule_id}/occurrences 의 항목 하나
    """
    date: date
    day_of_week: int
    is_modified: bool
    reason: Optional[str] = None
    time_blocks: List[dict]
