# backend/app/api/endpoints/web/schedules.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_current_user_id
from app.core.errors import ConflictError, NotFoundError, ScheduleError, ValidationError
from app.crud import schedules as schedule_crud
from app.models.schedule import Schedule
from app.schemas.schedule import (
    ConflictRead,
    ConflictReport,
    ExceptionCreate,
    OccurrenceRead,
    ScheduleCreate,
    ScheduleRead,
    ScheduleUpdate,
    TimeBlockCreate,
)
from app.services import schedules as schedule_service

router = APIRouter(tags=["Schedules"])


def _to_schedule_read(schedule: Schedule) -> ScheduleRead:
    data = schedule.model_dump(mode="json")
    return ScheduleRead(
        **data,
        has_conflicts=schedule_service.has_conflicts(schedule),
        weekly_study_minutes=schedule_service.weekly_study_minutes(schedule),
    )


def _to_http_exception(exc: ScheduleError) -> HTTPException:
    """
    코어 에러 -> HTTP 응답 변환 (코어는 HTTP를 모름)
    """
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": exc.message,
                "day": exc.day,
                "conflicting_blocks": [b.model_dump(mode="json") for b in exc.conflicting_blocks],
            },
        )
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": exc.message, "errors": exc.errors},
        )
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


async def _get_owned_schedule(user_id: str, schedule_id: str) -> Schedule:
    schedule = await schedule_crud.get_schedule(user_id, schedule_id)
    if not schedule:
        raise _to_http_exception(NotFoundError("Schedule not found"))
    return schedule


async def _save(schedule: Schedule) -> ScheduleRead:
    saved = await schedule_crud.save_schedule(schedule)
    if not saved:
        # 읽은 뒤 저장 전에 삭제된 경우
        raise _to_http_exception(NotFoundError("Schedule not found"))
    return _to_schedule_read(saved)


# CREATE
@router.post("/", response_model=ScheduleRead, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreate,
    user_id: str = Depends(get_current_user_id),
):
    try:
        schedule = schedule_service.create_schedule(
            user_id=user_id,
            name=payload.name,
            description=payload.description,
            time_blocks=[b.to_block() for b in payload.time_blocks],
            recurring=payload.recurring.to_rule(),
            exceptions=[e.to_exception() for e in payload.exceptions],
        )
    except ScheduleError as exc:
        raise _to_http_exception(exc)

    created = await schedule_crud.create_schedule(schedule)
    return _to_schedule_read(created)


# READ ALL
@router.get("/", response_model=List[ScheduleRead])
async def read_schedules(
    is_active: Optional[bool] = Query(None),
    user_id: str = Depends(get_current_user_id),
):
    schedules = await schedule_crud.get_schedules(user_id, is_active=is_active)
    return [_to_schedule_read(s) for s in schedules]


# READ ONE
@router.get("/{schedule_id}", response_model=ScheduleRead)
async def read_schedule(schedule_id: str, user_id: str = Depends(get_current_user_id)):
    return _to_schedule_read(await _get_owned_schedule(user_id, schedule_id))


# UPDATE
@router.put("/{schedule_id}", response_model=ScheduleRead)
async def update_schedule(
    schedule_id: str,
    payload: ScheduleUpdate,
    user_id: str = Depends(get_current_user_id),
):
    schedule = await _get_owned_schedule(user_id, schedule_id)
    try:
        updated = schedule_service.update_schedule(schedule, payload.to_changes())
    except ScheduleError as exc:
        raise _to_http_exception(exc)

    if updated is schedule:
        return _to_schedule_read(schedule)
    return await _save(updated)


# DELETE
@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(schedule_id: str, user_id: str = Depends(get_current_user_id)):
    deleted = await schedule_crud.delete_schedule(user_id, schedule_id)
    if not deleted:
        raise _to_http_exception(NotFoundError("Schedule not found"))
    return None


# TOGGLE
@router.put("/{schedule_id}/toggle", response_model=ScheduleRead)
async def toggle_schedule(schedule_id: str, user_id: str = Depends(get_current_user_id)):
    schedule = await _get_owned_schedule(user_id, schedule_id)
    return await _save(schedule_service.toggle_active(schedule))


# ADD TIME BLOCK
@router.put("/{schedule_id}/time-blocks", response_model=ScheduleRead)
async def add_time_block(
    schedule_id: str,
    payload: TimeBlockCreate,
    user_id: str = Depends(get_current_user_id),
):
    schedule = await _get_owned_schedule(user_id, schedule_id)
    try:
        updated = schedule_service.add_time_block(schedule, payload.to_block())
    except ScheduleError as exc:
        raise _to_http_exception(exc)
    return await _save(updated)


# REMOVE TIME BLOCK (없는 block_id 는 그대로 반환)
@router.delete("/{schedule_id}/time-blocks/{block_id}", response_model=ScheduleRead)
async def remove_time_block(
    schedule_id: str,
    block_id: str,
    user_id: str = Depends(get_current_user_id),
):
    schedule = await _get_owned_schedule(user_id, schedule_id)
    updated = schedule_service.remove_time_block(schedule, block_id)
    if updated is schedule:
        return _to_schedule_read(schedule)
    return await _save(updated)


# CONFLICTS
@router.get("/{schedule_id}/conflicts", response_model=ConflictReport)
async def check_conflicts(schedule_id: str, user_id: str = Depends(get_current_user_id)):
    schedule = await _get_owned_schedule(user_id, schedule_id)
    conflicts = schedule_service.find_conflicts(schedule.time_blocks)
    return ConflictReport(
        has_conflicts=schedule_service.has_conflicts(schedule),
        conflicts=[
            ConflictRead(
                day=c.day,
                conflicting_blocks=[b.model_dump() for b in c.conflicting_blocks],
            )
            for c in conflicts
        ],
    )


# SET EXCEPTION (같은 날짜는 교체)
@router.put("/{schedule_id}/exceptions", response_model=ScheduleRead)
async def set_exception(
    schedule_id: str,
    payload: ExceptionCreate,
    user_id: str = Depends(get_current_user_id),
):
    schedule = await _get_owned_schedule(user_id, schedule_id)
    try:
        updated = schedule_service.set_exception(schedule, payload.to_exception())
    except ScheduleError as exc:
        raise _to_http_exception(exc)
    return await _save(updated)


# REMOVE EXCEPTION
@router.delete("/{schedule_id}/exceptions/{exception_date}", response_model=ScheduleRead)
async def remove_exception(
    schedule_id: str,
    exception_date: date,
    user_id: str = Depends(get_current_user_id),
):
    schedule = await _get_owned_schedule(user_id, schedule_id)
    updated = schedule_service.remove_exception(schedule, exception_date)
    if updated is schedule:
        return _to_schedule_read(schedule)
    return await _save(updated)


# OCCURRENCES (주간 보기 / 기간 조회)
@router.get("/{schedule_id}/occurrences", response_model=List[OccurrenceRead])
async def read_occurrences(
    schedule_id: str,
    start: date = Query(...),
    end: date = Query(...),
    user_id: str = Depends(get_current_user_id),
):
    if (end - start).days > 366:
        raise HTTPException(status_code=400, detail="Date range must not exceed 366 days")

    schedule = await _get_owned_schedule(user_id, schedule_id)
    try:
        projection = schedule_service.project_occurrences(schedule, (start, end))
    except ScheduleError as exc:
        raise _to_http_exception(exc)

    return [
        OccurrenceRead(
            date=o.date,
            day_of_week=o.day_of_week,
            is_modified=o.is_modified,
            reason=o.exception.reason if o.exception else None,
            time_blocks=[b.model_dump(mode="json") for b in o.time_blocks],
        )
        for o in projection
    ]
