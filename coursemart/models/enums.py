import enum

from sqlalchemy import Enum as SAEnum

from shared.constants.roles import Role


class SectionStatus(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class LessonStatus(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    PREVIEW = "preview"


class ProductStatus(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


def _values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# Shared SQLAlchemy enum instances (reuse across models to avoid duplicate type creation)
section_status_enum = SAEnum(SectionStatus, name="course_section_status", values_callable=_values)
lesson_status_enum = SAEnum(LessonStatus, name="lesson_status", values_callable=_values)
product_status_enum = SAEnum(ProductStatus, name="product_status", values_callable=_values)
user_role_enum = SAEnum(Role, name="user_role", values_callable=_values)
