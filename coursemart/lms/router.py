"""LMS router — HTTP layer only.

Course, section and lesson administration (admin only), the learner's course
list and lesson completion. Every action is its own endpoint. Delegates to
the controller.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from coursemart.database import get_db
from coursemart.dependencies import (
    get_current_user,
    get_lesson_manager,
    get_section_manager,
    require_admin,
)
from coursemart.lms import controller
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
from shared.models.user import CurrentUser

router = APIRouter(prefix="/lms", tags=["LMS"])


# ======================================================================
# Course endpoints
# ======================================================================


@router.post(
    "/courses",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a course (admin only)",
)
async def create_course(
    body: CreateCourseRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> CourseResponse:
    return await controller.create_course(db, body)


@router.get(
    "/courses",
    response_model=list[CourseResponse],
    summary="List courses (admin only)",
)
async def list_courses(
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> list[CourseResponse]:
    return await controller.list_courses(db)


@router.get(
    "/courses/me",
    response_model=list[UserCourseResponse],
    summary="Courses the current user has access to, with progress",
)
async def list_my_courses(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[UserCourseResponse]:
    return await controller.list_user_courses(db, user.id)


@router.get(
    "/courses/me/{course_id}",
    response_model=LearnerCourseResponse,
    summary="One of the current user's courses, with visible lessons and completion",
)
async def get_my_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> LearnerCourseResponse:
    return await controller.get_learner_course(db, user.id, course_id)


@router.get(
    "/courses/{course_id}",
    response_model=CourseDetailResponse,
    summary="Get course with sections and lessons in display order (admin only)",
)
async def get_course_detail(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> CourseDetailResponse:
    return await controller.get_course_detail(db, course_id)


@router.patch(
    "/courses/{course_id}",
    response_model=CourseResponse,
    summary="Update course (admin only)",
)
async def update_course(
    course_id: UUID,
    body: UpdateCourseRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> CourseResponse:
    return await controller.update_course(db, course_id, body)


@router.delete(
    "/courses/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete course with its sections and lessons (admin only)",
)
async def delete_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> None:
    await controller.delete_course(db, course_id)


# ======================================================================
# Section endpoints
# ======================================================================


@router.post(
    "/courses/{course_id}/sections",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append a section to a course (admin only)",
)
async def create_section(
    course_id: UUID,
    body: CreateSectionRequest,
    sections: OrderedCollectionManager = Depends(get_section_manager),
    _admin: CurrentUser = Depends(require_admin),
) -> SectionResponse:
    return await controller.create_section(sections, course_id, body)


@router.put(
    "/courses/{course_id}/sections/order",
    response_model=list[SectionResponse],
    summary="Reorder every section of a course (admin only)",
    description="``ordered_ids`` must be exactly the course's sections. "
    "Missing, foreign or duplicate ids are rejected and nothing changes.",
)
async def reorder_sections(
    course_id: UUID,
    body: ReorderRequest,
    sections: OrderedCollectionManager = Depends(get_section_manager),
    _admin: CurrentUser = Depends(require_admin),
) -> list[SectionResponse]:
    return await controller.reorder_sections(sections, course_id, body)


@router.patch(
    "/sections/{section_id}",
    response_model=SectionResponse,
    summary="Update section (admin only)",
)
async def update_section(
    section_id: UUID,
    body: UpdateSectionRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
) -> SectionResponse:
    return await controller.update_section(db, section_id, body)


@router.delete(
    "/sections/{section_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete section and its lessons (admin only)",
)
async def delete_section(
    section_id: UUID,
    sections: OrderedCollectionManager = Depends(get_section_manager),
    _admin: CurrentUser = Depends(require_admin),
) -> None:
    await controller.delete_section(sections, section_id)


# ======================================================================
# Lesson endpoints
# ======================================================================


@router.post(
    "/sections/{section_id}/lessons",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append a lesson to a section (admin only)",
)
async def create_lesson(
    section_id: UUID,
    body: CreateLessonRequest,
    lessons: OrderedCollectionManager = Depends(get_lesson_manager),
    _admin: CurrentUser = Depends(require_admin),
) -> LessonResponse:
    return await controller.create_lesson(lessons, section_id, body)


@router.put(
    "/lessons/order",
    response_model=list[LessonResponse],
    summary="Reorder the lessons of one section (admin only)",
    description="The section is taken from the lessons; ids spanning several "
    "sections are rejected.",
)
async def reorder_lessons(
    body: ReorderRequest,
    lessons: OrderedCollectionManager = Depends(get_lesson_manager),
    _admin: CurrentUser = Depends(require_admin),
) -> list[LessonResponse]:
    return await controller.reorder_lessons(lessons, body)


@router.patch(
    "/lessons/{lesson_id}",
    response_model=LessonResponse,
    summary="Update lesson (admin only)",
)
async def update_lesson(
    lesson_id: UUID,
    body: UpdateLessonRequest,
    db: AsyncSession = Depends(get_db),
    lessons: OrderedCollectionManager = Depends(get_lesson_manager),
    _admin: CurrentUser = Depends(require_admin),
) -> LessonResponse:
    return await controller.update_lesson(db, lessons, lesson_id, body)


@router.delete(
    "/lessons/{lesson_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete lesson (admin only)",
)
async def delete_lesson(
    lesson_id: UUID,
    lessons: OrderedCollectionManager = Depends(get_lesson_manager),
    _admin: CurrentUser = Depends(require_admin),
) -> None:
    await controller.delete_lesson(lessons, lesson_id)


# ======================================================================
# Lesson completion
# ======================================================================


@router.put(
    "/lessons/{lesson_id}/complete",
    response_model=LessonCompletionResponse,
    summary="Mark a lesson complete for the current user",
)
async def mark_lesson_complete(
    lesson_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> LessonCompletionResponse:
    return await controller.set_lesson_complete(db, user.id, lesson_id, complete=True)


@router.delete(
    "/lessons/{lesson_id}/complete",
    response_model=LessonCompletionResponse,
    summary="Clear the current user's completion of a lesson",
)
async def unmark_lesson_complete(
    lesson_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> LessonCompletionResponse:
    return await controller.set_lesson_complete(db, user.id, lesson_id, complete=False)
