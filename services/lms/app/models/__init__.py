# Import all models so Alembic can discover them via Base.metadata
from .course import Course
from .course_module import CourseModule
from .enrollment import Enrollment
from .lesson import Lesson
from .lesson_progress import LessonProgress
from .notification import Notification
from .payment_transaction import PaymentTransaction
from .quiz import Quiz
from .quiz_attempt import QuizAttempt
from .review import Review, ReviewReport, ReviewVote
from .user import User

__all__ = [
    "Course",
    "CourseModule",
    "Enrollment",
    "Lesson",
    "LessonProgress",
    "Notification",
    "PaymentTransaction",
    "Quiz",
    "QuizAttempt",
    "Review",
    "ReviewReport",
    "ReviewVote",
    "User",
]
