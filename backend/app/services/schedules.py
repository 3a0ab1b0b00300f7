# backend/app/services/schedules.py
"""
스케줄 코어 로직 (순수 함수 모음)

- 모든 연산은 (현재 Schedule, 변경 요청) -> 새 Schedule 또는 에러
- 입력 Schedule 은 절대 변경하지 않습니다. 검증에 실패하면 아무것도 반영되지 않습니다.
- DB, 로그 없음. 시각은 호출자가 now 로 넘기며, 생략하면 현재 UTC 시각을 씁니다.
"""

import calendar
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from app.core.errors import ConflictError, ValidationError
from app.models.schedule import (
    Occurrence,
    RecurrenceRule,
    Schedule,
    ScheduleException,
    TimeBlock,
    to_minutes,
)

UPDATABLE_FIELDS = {"name", "description", "time_blocks", "recurring", "exceptions", "is_active"}


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def day_of_week(d: date) -> int:
    """
    Python weekday(월=0) -> 0:일요일 ~ 6:토요일
    """
    return (d.weekday() + 1) % 7


# ---------- 검증 ----------

def validate_time_block(block) -> None:
    if isinstance(block, TimeBlock) and not 0 <= block.day_of_week <= 6:
        raise ValidationError("Day of week must be 0-6")
    if to_minutes(block.start_time) >= to_minutes(block.end_time):
        raise ValidationError(
            f"start_time must be before end_time ({block.start_time}-{block.end_time})",
            errors=[{"loc": ["start_time"], "msg": "start_time must be before end_time"}],
        )


def _validate_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Schedule name is required")
    return name.strip()


def _validate_blocks(time_blocks: Sequence[TimeBlock]) -> None:
    if not time_blocks:
        raise ValidationError("At least one time block is required")
    seen = set()
    for block in time_blocks:
        validate_time_block(block)
        if block.id in seen:
            raise ValidationError(f"Duplicate time block id {block.id}")
        seen.add(block.id)
    conflict = find_first_conflict(time_blocks)
    if conflict is not None:
        raise conflict


def _validate_exception(exception: ScheduleException) -> None:
    if exception.action == "skip":
        if exception.modified_time_blocks:
            raise ValidationError("A skip exception must not carry modified_time_blocks")
        return

    if exception.modified_time_blocks is None:
        raise ValidationError("A modify exception requires modified_time_blocks")
    for block in exception.modified_time_blocks:
        validate_time_block(block)
    pair = _first_overlap(exception.modified_time_blocks)
    if pair is not None:
        raise ConflictError(day_of_week(exception.date), *pair)


def _validate_exceptions(exceptions: Sequence[ScheduleException]) -> None:
    dates = set()
    for exception in exceptions:
        if exception.date in dates:
            raise ValidationError(f"Only one exception is allowed per date ({exception.date})")
        dates.add(exception.date)
        _validate_exception(exception)


# ---------- 충돌 검사 ----------

def _first_overlap(blocks: Iterable) -> Optional[Tuple]:
    """
    같은 날의 블록들을 시작/종료 시각 순으로 정렬해 인접 쌍만 비교합니다.
    끝 == 다음 시작 은 충돌이 아닙니다 (연속 블록 허용).
    """
    # sorted 는 안정 정렬이므로 완전히 같은 구간은 입력 순서를 유지
    ordered = sorted(blocks, key=lambda b: (to_minutes(b.start_time), to_minutes(b.end_time)))
    for current, following in zip(ordered, ordered[1:]):
        if to_minutes(current.end_time) > to_minutes(following.start_time):
            return current, following
    return None


def _group_by_day(blocks: Iterable[TimeBlock]) -> Dict[int, List[TimeBlock]]:
    by_day: Dict[int, List[TimeBlock]] = defaultdict(list)
    for block in blocks:
        by_day[block.day_of_week].append(block)
    return by_day


def find_conflicts(blocks: Iterable[TimeBlock]) -> List[ConflictError]:
    """
    요일마다 처음 발견된 충돌 쌍 하나씩을 요일 오름차순으로 반환합니다.
    """
    conflicts = []
    by_day = _group_by_day(blocks)
    for day in sorted(by_day):
        pair = _first_overlap(by_day[day])
        if pair is not None:
            conflicts.append(ConflictError(day, *pair))
    return conflicts


def find_first_conflict(blocks: Iterable[TimeBlock]) -> Optional[ConflictError]:
    by_day = _group_by_day(blocks)
    for day in sorted(by_day):
        pair = _first_overlap(by_day[day])
        if pair is not None:
            return ConflictError(day, *pair)
    return None


def has_conflicts(schedule: Schedule) -> bool:
    # 캐시하지 않음: 블록은 여러 경로로 바뀔 수 있으므로 매번 전체 재계산
    return find_first_conflict(schedule.time_blocks) is not None


def weekly_study_minutes(schedule: Schedule) -> int:
    return sum(
        to_minutes(b.end_time) - to_minutes(b.start_time)
        for b in schedule.time_blocks
        if b.type == "study"
    )


# ---------- 명령 (생성/수정) ----------

def create_schedule(
    user_id: str,
    name: str,
    time_blocks: Sequence[TimeBlock],
    recurring: RecurrenceRule,
    description: Optional[str] = None,
    exceptions: Sequence[ScheduleException] = (),
    now: Optional[datetime] = None,
) -> Schedule:
    if not user_id:
        raise ValidationError("user_id is required")
    name = _validate_name(name)
    if recurring is None or recurring.start_date is None:
        raise ValidationError("recurring.start_date is required")
    _validate_blocks(time_blocks)
    _validate_exceptions(exceptions)

    created = _now(now)
    return Schedule(
        user_id=user_id,
        name=name,
        description=description,
        time_blocks=tuple(time_blocks),
        recurring=recurring,
        exceptions=tuple(exceptions),
        created_at=created,
        updated_at=created,
    )


def update_schedule(schedule: Schedule, changes: dict, now: Optional[datetime] = None) -> Schedule:
    """
    부분 업데이트: 넘어온 필드만 교체합니다.
    time_blocks 가 오면 기존 블록과 합치지 않고 새 목록 전체를 다시 검사합니다.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown schedule fields: {', '.join(sorted(unknown))}")

    update = dict(changes)
    if "name" in update:
        update["name"] = _validate_name(update["name"])
    if "time_blocks" in update:
        update["time_blocks"] = tuple(update["time_blocks"] or ())
        _validate_blocks(update["time_blocks"])
    if "recurring" in update and update["recurring"] is None:
        raise ValidationError("recurring.start_date is required")
    if "exceptions" in update:
        update["exceptions"] = tuple(update["exceptions"] or ())
        _validate_exceptions(update["exceptions"])
    if "is_active" in update and not isinstance(update["is_active"], bool):
        raise ValidationError("is_active must be boolean")

    if not update:
        return schedule
    update["updated_at"] = _now(now)
    return schedule.model_copy(update=update)


def add_time_block(schedule: Schedule, block: TimeBlock, now: Optional[datetime] = None) -> Schedule:
    validate_time_block(block)
    if any(b.id == block.id for b in schedule.time_blocks):
        raise ValidationError(f"Duplicate time block id {block.id}")

    # 같은 요일의 기존 블록과만 비교 (전체 재검사 아님)
    start, end = to_minutes(block.start_time), to_minutes(block.end_time)
    for existing in schedule.time_blocks:
        if existing.day_of_week != block.day_of_week:
            continue
        if start < to_minutes(existing.end_time) and to_minutes(existing.start_time) < end:
            first, second = sorted(
                (existing, block), key=lambda b: (to_minutes(b.start_time), to_minutes(b.end_time))
            )
            raise ConflictError(block.day_of_week, first, second)

    return schedule.model_copy(
        update={"time_blocks": (*schedule.time_blocks, block), "updated_at": _now(now)}
    )


def remove_time_block(schedule: Schedule, block_id: str, now: Optional[datetime] = None) -> Schedule:
    remaining = tuple(b for b in schedule.time_blocks if b.id != block_id)
    if len(remaining) == len(schedule.time_blocks):
        return schedule
    return schedule.model_copy(update={"time_blocks": remaining, "updated_at": _now(now)})


def toggle_active(schedule: Schedule, now: Optional[datetime] = None) -> Schedule:
    return schedule.model_copy(update={"is_active": not schedule.is_active, "updated_at": _now(now)})


def set_exception(
    schedule: Schedule, exception: ScheduleException, now: Optional[datetime] = None
) -> Schedule:
    """
    날짜당 예외는 하나. 같은 날짜가 이미 있으면 새 예외로 교체합니다.
    """
    _validate_exception(exception)
    others = [e for e in schedule.exceptions if e.date != exception.date]
    return schedule.model_copy(update={"exceptions": (*others, exception), "updated_at": _now(now)})


def remove_exception(schedule: Schedule, exception_date: date, now: Optional[datetime] = None) -> Schedule:
    remaining = tuple(e for e in schedule.exceptions if e.date != exception_date)
    if len(remaining) == len(schedule.exceptions):
        return schedule
    return schedule.model_copy(update={"exceptions": remaining, "updated_at": _now(now)})


# ---------- 반복 일정 전개 ----------

def _add_months(d: date, months: int) -> date:
    """
    d 의 일(day)을 유지한 채 months 만큼 이동. 해당 달에 그 날이 없으면 말일.
    """
    month_index = d.month - 1 + months
    year, month = d.year + month_index // 12, month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def _monthly_window_starts(rule: RecurrenceRule, start: date) -> Iterator[date]:
    # start 이전에 시작해 start 를 포함하는 창도 있을 수 있으므로 한 달 앞에서 시작
    months = max((start.year - rule.start_date.year) * 12 + start.month - rule.start_date.month - 1, 0)
    while True:
        yield _add_months(rule.start_date, months)
        months += 1


def _candidate_dates(rule: RecurrenceRule, start: date, end: date) -> Iterator[date]:
    if start > end:
        return

    # is_recurring 은 표시용 플래그. 후보 날짜는 frequency/days_of_week 로만 결정
    if rule.frequency == "monthly":
        for window_start in _monthly_window_starts(rule, start):
            if window_start > end:
                return
            for offset in range(7):
                current = window_start + timedelta(days=offset)
                if start <= current <= end:
                    yield current
        return

    allowed = set(rule.days_of_week) if rule.frequency == "weekly" else set()
    current = start
    while current <= end:
        if not allowed or day_of_week(current) in allowed:
            yield current
        current += timedelta(days=1)


class OccurrenceProjection:
    """
    project_occurrences 결과. 여러 번 순회할 수 있고 매번 새로 계산합니다 (lazy, 유한).
    """

    def __init__(self, schedule: Schedule, start: date, end: date):
        self.schedule = schedule
        rule = schedule.recurring
        self.start = max(start, rule.start_date)
        self.end = end if rule.end_date is None else min(end, rule.end_date)

    def __iter__(self) -> Iterator[Occurrence]:
        schedule = self.schedule
        exceptions = {e.date: e for e in schedule.exceptions}
        by_day = _group_by_day(schedule.time_blocks)

        for current in _candidate_dates(schedule.recurring, self.start, self.end):
            weekday = day_of_week(current)
            exception = exceptions.get(current)

            if exception is not None and exception.action == "skip":
                continue
            if exception is not None and exception.action == "modify":
                yield Occurrence(
                    date=current,
                    day_of_week=weekday,
                    time_blocks=exception.modified_time_blocks or (),
                    exception=exception,
                )
                continue

            blocks = sorted(
                by_day.get(weekday, []),
                key=lambda b: (to_minutes(b.start_time), to_minutes(b.end_time)),
            )
            if blocks:
                yield Occurrence(date=current, day_of_week=weekday, time_blocks=blocks)


def project_occurrences(schedule: Schedule, date_range: Tuple[date, date]) -> OccurrenceProjection:
    """
    date_range (양 끝 포함) 안의 실제 일정들을 반복 규칙의 [start_date, end_date] 로 잘라 전개합니다.
    """
    start, end = date_range
    if start > end:
        raise ValidationError("date range start must not be after end")
    return OccurrenceProjection(schedule, start, end)
