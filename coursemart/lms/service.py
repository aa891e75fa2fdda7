"""LMS service — courses, sections, lessons and lesson completion.

Section and lesson positions are owned by ``OrderedCollectionManager``; the
functions here never compute ``sort_order`` themselves. Moving a lesson to
another section is an append on the manager too.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from coursemart.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)
from coursemart.models.course import Course
from coursemart.models.course_section import CourseSection
from coursemart.models.enums import LessonStatus, SectionStatus
from coursemart.models.lesson import Lesson
from coursemart.models.user_course_access import UserCourseAccess
from coursemart.models.user_lesson_complete import UserLessonComplete
from coursemart.ordering.service import OrderedCollectionManager
from coursemart.purchases import service as purchase_service
from shared.database.postgres import insert_for

logger = logging.getLogger(__name__)

VISIBLE_LESSON_STATUSES = (LessonStatus.PUBLIC, LessonStatus.PREVIEW)


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


async def create_course(db: AsyncSession, *, name: str, description: str) -> Course:
    course = Course(name=name, description=description)
    db.add(course)
    await db.flush()
    return course


async def get_course(db: AsyncSession, course_id: UUID) -> Course:
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course", course_id)
    return course


async def list_courses(db: AsyncSession) -> list[Course]:
    result = await db.execute(select(Course).order_by(Course.name))
    return list(result.scalars().all())


async def get_course_detail(db: AsyncSession, course_id: UUID) -> Course:
    """Course with its sections and their lessons, both in display order."""
    result = await db.execute(
        select(Course)
        .where(Course.course_id == course_id)
        .options(selectinload(Course.sections).selectinload(CourseSection.lessons))
    )
    course = result.scalar_one_or_none()
    if course is None:
        raise NotFoundError("Course", course_id)
    return course


async def update_course(db: AsyncSession, course_id: UUID, **fields) -> Course:
    course = await get_course(db, course_id)
    for key, value in fields.items():
        setattr(course, key, value)
    await db.flush()
    return course


async def delete_course(db: AsyncSession, course_id: UUID) -> None:
    course = await get_course(db, course_id)
    await db.delete(course)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(
            "Course is bundled in a product; remove it from every product first."
        ) from exc


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


async def get_section(db: AsyncSession, section_id: UUID) -> CourseSection:
    section = await db.get(CourseSection, section_id)
    if section is None:
        raise NotFoundError("Section", section_id)
    return section


async def update_section(db: AsyncSession, section_id: UUID, **fields) -> CourseSection:
    section = await get_section(db, section_id)
    for key, value in fields.items():
        setattr(section, key, value)
    await db.flush()
    return section


# ---------------------------------------------------------------------------
# Lessons
# ---------------------------------------------------------------------------


async def get_lesson(db: AsyncSession, lesson_id: UUID) -> Lesson:
    lesson = await db.get(Lesson, lesson_id)
    if lesson is None:
        raise NotFoundError("Lesson", lesson_id)
    return lesson


async def update_lesson(
    db: AsyncSession,
    lessons: OrderedCollectionManager,
    lesson_id: UUID,
    **fields,
) -> Lesson:
    """Apply ``fields``; a new ``section_id`` appends the lesson to that section.

    Moves go through ``lessons`` so the target section is locked and the
    position race is retried like any other append.
    """
    section_id = fields.pop("section_id", None)
    if section_id is not None:
        return await lessons.move(lesson_id, section_id, **fields)

    lesson = await get_lesson(db, lesson_id)
    for key, value in fields.items():
        setattr(lesson, key, value)
    await db.flush()
    return lesson


# ---------------------------------------------------------------------------
# Lesson completion
# ---------------------------------------------------------------------------


async def can_update_lesson_complete_status(
    db: AsyncSession, user_id: UUID, lesson_id: UUID
) -> bool:
    """True when the user may see the lesson: course access, public section, visible lesson."""
    result = await db.execute(
        select(Lesson.lesson_id)
        .join(
            CourseSection,
            and_(
                CourseSection.section_id == Lesson.section_id,
                CourseSection.status == SectionStatus.PUBLIC,
            ),
        )
        .join(
            UserCourseAccess,
            and_(
                UserCourseAccess.course_id == CourseSection.course_id,
                UserCourseAccess.user_id == user_id,
            ),
        )
        .where(Lesson.lesson_id == lesson_id, Lesson.status.in_(VISIBLE_LESSON_STATUSES))
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def set_lesson_complete(
    db: AsyncSession, user_id: UUID, lesson_id: UUID, *, complete: bool
) -> None:
    await get_lesson(db, lesson_id)
    if not await can_update_lesson_complete_status(db, user_id, lesson_id):
        raise PermissionDeniedError("You do not have access to this lesson.")

    if complete:
        stmt = (
            insert_for(db, UserLessonComplete)
            .values(user_id=user_id, lesson_id=lesson_id, created_at=datetime.now(timezone.utc))
            .on_conflict_do_nothing(index_elements=["user_id", "lesson_id"])
        )
        await db.execute(stmt)
    else:
        await db.execute(
            delete(UserLessonComplete).where(
                UserLessonComplete.user_id == user_id,
                UserLessonComplete.lesson_id == lesson_id,
            )
        )
    logger.info(
        "User %s marked lesson %s %s", user_id, lesson_id, "complete" if complete else "incomplete"
    )


async def list_completed_lesson_ids(db: AsyncSession, user_id: UUID, course_id: UUID) -> list[UUID]:
    result = await db.execute(
        select(UserLessonComplete.lesson_id)
        .join(Lesson, Lesson.lesson_id == UserLessonComplete.lesson_id)
        .join(CourseSection, CourseSection.section_id == Lesson.section_id)
        .where(UserLessonComplete.user_id == user_id, CourseSection.course_id == course_id)
    )
    return list(result.scalars().all())


async def get_learner_course(db: AsyncSession, user_id: UUID, course_id: UUID) -> dict:
    """One accessible course as the learner sees it.

    Only public sections and public or preview lessons are listed, in display
    order, each lesson flagged with the user's completion.
    """
    course = await get_course(db, course_id)
    if not await purchase_service.user_has_course_access(db, user_id, course_id):
        raise PermissionDeniedError("You do not have access to this course.")

    sections = (
        await db.execute(
            select(CourseSection)
            .where(
                CourseSection.course_id == course_id,
                CourseSection.status == SectionStatus.PUBLIC,
            )
            .order_by(CourseSection.sort_order)
        )
    ).scalars().all()
    lessons = (
        await db.execute(
            select(Lesson)
            .where(
                Lesson.section_id.in_([s.section_id for s in sections]),
                Lesson.status.in_(VISIBLE_LESSON_STATUSES),
            )
            .order_by(Lesson.sort_order)
        )
    ).scalars().all()
    completed = set(await list_completed_lesson_ids(db, user_id, course_id))

    by_section: dict[UUID, list[dict]] = {s.section_id: [] for s in sections}
    for lesson in lessons:
        by_section[lesson.section_id].append(
            {
                "lesson_id": lesson.lesson_id,
                "name": lesson.name,
                "description": lesson.description,
                "youtube_video_id": lesson.youtube_video_id,
                "status": lesson.status,
                "sort_order": lesson.sort_order,
                "complete": lesson.lesson_id in completed,
            }
        )
    return {
        "course_id": course.course_id,
        "name": course.name,
        "description": course.description,
        "sections": [
            {
                "section_id": s.section_id,
                "name": s.name,
                "sort_order": s.sort_order,
                "lessons": by_section[s.section_id],
            }
            for s in sections
        ],
    }


async def list_user_courses(db: AsyncSession, user_id: UUID) -> list[dict]:
    """Courses the user can access, with counts over visible sections and lessons."""
    result = await db.execute(
        select(
            Course.course_id,
            Course.name,
            Course.description,
            func.count(func.distinct(CourseSection.section_id)),
            func.count(func.distinct(Lesson.lesson_id)),
            func.count(func.distinct(UserLessonComplete.lesson_id)),
        )
        .join(
            UserCourseAccess,
            and_(
                UserCourseAccess.course_id == Course.course_id,
                UserCourseAccess.user_id == user_id,
            ),
        )
        .outerjoin(
            CourseSection,
            and_(
                CourseSection.course_id == Course.course_id,
                CourseSection.status == SectionStatus.PUBLIC,
            ),
        )
        .outerjoin(
            Lesson,
            and_(
                Lesson.section_id == CourseSection.section_id,
                Lesson.status.in_(VISIBLE_LESSON_STATUSES),
            ),
        )
        .outerjoin(
            UserLessonComplete,
            and_(
                UserLessonComplete.lesson_id == Lesson.lesson_id,
                UserLessonComplete.user_id == user_id,
            ),
        )
        .group_by(Course.course_id, Course.name, Course.description)
        .order_by(Course.name)
    )
    return [
        {
            "course_id": course_id,
            "name": name,
            "description": description,
            "sections_count": sections,
            "lessons_count": lessons,
            "lessons_complete": complete,
        }
        for course_id, name, description, sections, lessons, complete in result.all()
    ]
