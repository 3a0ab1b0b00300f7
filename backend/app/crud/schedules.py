# backend/app/crud/schedules.py
from typing import List, Optional

from app.db.mongo import get_db
from app.models.schedule import Schedule


def get_schedules_collection():
    """
    Motor DB 핸들에서 schedules 컬렉션을 가져옵니다.
    """
    return get_db()["schedules"]


def to_document(schedule: Schedule) -> dict:
    # id -> _id, 날짜/시각은 ISO 문자열로 저장
    return schedule.model_dump(mode="json", by_alias=True)


def from_document(doc) -> Schedule:
    return Schedule.model_validate(doc)


def _owned_filter(user_id: str, schedule_id: str) -> dict:
    return {"_id": schedule_id, "user_id": user_id}


# CREATE
async def create_schedule(schedule: Schedule) -> Schedule:
    col = get_schedules_collection()
    await col.insert_one(to_document(schedule))
    saved = await col.find_one({"_id": schedule.id})
    return from_document(saved)


# READ ALL (is_active 필터 선택)
async def get_schedules(user_id: str, is_active: Optional[bool] = None) -> List[Schedule]:
    col = get_schedules_collection()
    query = {"user_id": user_id}
    if is_active is not None:
        query["is_active"] = is_active

    cursor = col.find(query).sort("created_at", -1)
    return [from_document(doc) async for doc in cursor]


# READ ONE (소유자 기준)
async def get_schedule(user_id: str, schedule_id: str) -> Optional[Schedule]:
    doc = await get_schedules_collection().find_one(_owned_filter(user_id, schedule_id))
    return from_document(doc) if doc else None


# UPDATE (문서 전체 교체, last-write-wins)
async def save_schedule(schedule: Schedule) -> Optional[Schedule]:
    col = get_schedules_collection()
    result = await col.replace_one(_owned_filter(schedule.user_id, schedule.id), to_document(schedule))
    if result.matched_count == 0:
        return None
    return schedule


# DELETE
async def delete_schedule(user_id: str, schedule_id: str) -> bool:
    result = await get_schedules_collection().delete_one(_owned_filter(user_id, schedule_id))
    return result.deleted_count == 1
