# Import all models so Alembic can discover them via Base.metadata
from .course import Course
from .course_section import CourseSection
from .lesson import Lesson
from .product import CourseProduct, Product
from .purchase import Purchase
from .user import User
from .user_course_access import UserCourseAccess
from .user_lesson_complete import UserLessonComplete

__all__ = [
    "Course",
    "CourseProduct",
    "CourseSection",
    "Lesson",
    "Product",
    "Purchase",
    "User",
    "UserCourseAccess",
    "UserLessonComplete",
]
