"""LMS controller — maps service results to HTTP responses, catches domain exceptions."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursemart.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    TransactionAbortError,
    ValidationError,
)
from coursemart.lms import service
from coursemart.lms.schemas import (
    CourseDetailResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateLessonRequest,
    CreateSectionRequest,
    LessonCompletionResponse,
    LearnerCourseResponse,
    LessonResponse,
    ReorderRequest,
    SectionResponse,
    UpdateCourseRequest,
    UpdateLessonRequest,
    UpdateSectionRequest,
    UserCourseResponse,
)
from coursemart.ordering.service import OrderedCollectionManager

logger = logging.getLogger(__name__)


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, PermissionDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, TransactionAbortError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    logger.exception("Unhandled LMS error")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


# ---------------------------------------------------------------------------
# Course
# ---------------------------------------------------------------------------


async def create_course(db: AsyncSession, body: CreateCourseRequest) -> CourseResponse:
    try:
        course = await service.create_course(db, **body.model_dump())
        return CourseResponse.model_validate(course)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def list_courses(db: AsyncSession) -> list[CourseResponse]:
    courses = await service.list_courses(db)
    return [CourseResponse.model_validate(c) for c in courses]


async def get_course_detail(db: AsyncSession, course_id: UUID) -> CourseDetailResponse:
    try:
        course = await service.get_course_detail(db, course_id)
        return CourseDetailResponse.model_validate(course)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def update_course(
    db: AsyncSession, course_id: UUID, body: UpdateCourseRequest
) -> CourseResponse:
    try:
        course = await service.update_course(db, course_id, **body.model_dump(exclude_unset=True))
        return CourseResponse.model_validate(course)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def delete_course(db: AsyncSession, course_id: UUID) -> None:
    try:
        await service.delete_course(db, course_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def list_user_courses(db: AsyncSession, user_id: UUID) -> list[UserCourseResponse]:
    rows = await service.list_user_courses(db, user_id)
    return [UserCourseResponse(**row) for row in rows]


async def get_learner_course(
    db: AsyncSession, user_id: UUID, course_id: UUID
) -> LearnerCourseResponse:
    try:
        return LearnerCourseResponse(**await service.get_learner_course(db, user_id, course_id))
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


# ---------------------------------------------------------------------------
# Section
# ---------------------------------------------------------------------------


async def create_section(
    sections: OrderedCollectionManager, course_id: UUID, body: CreateSectionRequest
) -> SectionResponse:
    try:
        section = await sections.insert_at_end(course_id, **body.model_dump())
        return SectionResponse.model_validate(section)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def update_section(
    db: AsyncSession, section_id: UUID, body: UpdateSectionRequest
) -> SectionResponse:
    try:
        section = await service.update_section(db, section_id, **body.model_dump(exclude_unset=True))
        return SectionResponse.model_validate(section)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def delete_section(sections: OrderedCollectionManager, section_id: UUID) -> None:
    try:
        await sections.delete(section_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def reorder_sections(
    sections: OrderedCollectionManager, course_id: UUID, body: ReorderRequest
) -> list[SectionResponse]:
    try:
        rows = await sections.reorder(course_id, body.ordered_ids)
        return [SectionResponse.model_validate(r) for r in rows]
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


# ---------------------------------------------------------------------------
# Lesson
# ---------------------------------------------------------------------------


async def create_lesson(
    lessons: OrderedCollectionManager, section_id: UUID, body: CreateLessonRequest
) -> LessonResponse:
    try:
        lesson = await lessons.insert_at_end(section_id, **body.model_dump())
        return LessonResponse.model_validate(lesson)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def update_lesson(
    db: AsyncSession,
    lessons: OrderedCollectionManager,
    lesson_id: UUID,
    body: UpdateLessonRequest,
) -> LessonResponse:
    try:
        lesson = await service.update_lesson(
            db, lessons, lesson_id, **body.model_dump(exclude_unset=True)
        )
        return LessonResponse.model_validate(lesson)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def delete_lesson(lessons: OrderedCollectionManager, lesson_id: UUID) -> None:
    try:
        await lessons.delete(lesson_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def reorder_lessons(
    lessons: OrderedCollectionManager, body: ReorderRequest
) -> list[LessonResponse]:
    try:
        rows = await lessons.reorder_children(body.ordered_ids)
        return [LessonResponse.model_validate(r) for r in rows]
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def set_lesson_complete(
    db: AsyncSession, user_id: UUID, lesson_id: UUID, *, complete: bool
) -> LessonCompletionResponse:
    try:
        await service.set_lesson_complete(db, user_id, lesson_id, complete=complete)
        return LessonCompletionResponse(lesson_id=lesson_id, complete=complete)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
