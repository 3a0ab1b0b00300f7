# backend/app/core/errors.py

from typing import Any, Dict, List, Optional


class ScheduleError(Exception):
    """
    스케줄 코어에서 발생하는 모든 에러의 공통 부모 클래스입니다.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ScheduleError):
    """
    필드 값 자체가 잘못된 경우 (시간 형식, 요일 범위, 빈 필수값 등)
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or [{"msg": message}]


class ConflictError(ScheduleError):
    """
    같은 요일의 두 타임 블록이 겹치는 경우.
    화면에 표시할 수 있도록 요일과 충돌한 블록 두 개를 함께 들고 있습니다.
    """

    def __init__(self, day: int, first: Any, second: Any):
        super().__init__(f"Time blocks overlap on day {day}")
        self.day = day
        self.first = first
        self.second = second

    @property
    def conflicting_blocks(self) -> list:
        return [self.first, self.second]


class NotFoundError(ScheduleError):
    """
    스케줄이 없거나 호출한 유저의 소유가 아닌 경우
    """
    pass
