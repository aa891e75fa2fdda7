"""LMS domain Pydantic V2 schemas.

Covers Course, CourseSection, Lesson and lesson completion.
Request models are separate from response models.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coursemart.models.enums import LessonStatus, SectionStatus


def _reject_null(v):
    # Omitted fields are left alone; an explicit null would clear a NOT NULL column
    if v is None:
        raise ValueError("may be omitted but not null")
    return v


# ---------------------------------------------------------------------------
# Course
# ---------------------------------------------------------------------------


class CreateCourseRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=300)
    description: str = Field(min_length=1)


class UpdateCourseRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = Field(default=None, min_length=1)

    @field_validator("name", "description")
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    name: str
    description: str
    created_at: datetime
    updated_at: datetime


class UserCourseResponse(BaseModel):
    """A course on the learner's dashboard, with progress counts."""

    course_id: UUID
    name: str
    description: str
    sections_count: int
    lessons_count: int
    lessons_complete: int


# ---------------------------------------------------------------------------
# Section
# ---------------------------------------------------------------------------


class CreateSectionRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=300)
    status: SectionStatus = SectionStatus.PRIVATE


class UpdateSectionRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=300)
    status: SectionStatus | None = None

    @field_validator("name", "status")
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)


class SectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    section_id: UUID
    course_id: UUID
    name: str
    status: SectionStatus
    sort_order: int


# ---------------------------------------------------------------------------
# Lesson
# ---------------------------------------------------------------------------


class CreateLessonRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=300)
    youtube_video_id: str = Field(min_length=1, max_length=64)
    status: LessonStatus = LessonStatus.PRIVATE
    description: str | None = None

    @field_validator("description")
    @classmethod
    def blank_description_is_none(cls, v: str | None) -> str | None:
        return v or None


class UpdateLessonRequest(BaseModel):
    """Partial update. A new ``section_id`` moves the lesson to the end of that section."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=300)
    youtube_video_id: str | None = Field(default=None, min_length=1, max_length=64)
    status: LessonStatus | None = None
    description: str | None = None
    section_id: UUID | None = None

    @field_validator("description")
    @classmethod
    def blank_description_is_none(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("name", "youtube_video_id", "status", "section_id")
    @classmethod
    def not_null(cls, v):
        return _reject_null(v)


class LessonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    section_id: UUID
    name: str
    description: str | None
    youtube_video_id: str
    status: LessonStatus
    sort_order: int


class SectionWithLessonsResponse(SectionResponse):
    lessons: list[LessonResponse] = []


class CourseDetailResponse(CourseResponse):
    sections: list[SectionWithLessonsResponse] = []


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class ReorderRequest(BaseModel):
    """Every sibling id, in the desired display order."""

    ordered_ids: list[UUID] = Field(
        description="The complete set of sibling ids; position in the list becomes sort_order.",
    )


class LessonCompletionResponse(BaseModel):
    lesson_id: UUID
    complete: bool


# ---------------------------------------------------------------------------
# Learner view
# ---------------------------------------------------------------------------


class LearnerLessonResponse(BaseModel):
    lesson_id: UUID
    name: str
    description: str | None
    youtube_video_id: str
    status: LessonStatus
    sort_order: int
    complete: bool


class LearnerSectionResponse(BaseModel):
    section_id: UUID
    name: str
    sort_order: int
    lessons: list[LearnerLessonResponse]


class LearnerCourseResponse(BaseModel):
    """A purchased course: visible sections and lessons only, with completion flags."""

    course_id: UUID
    name: str
    description: str
    sections: list[LearnerSectionResponse]
