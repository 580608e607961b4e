import enum

from sqlalchemy import Enum as SAEnum

from shared.constants import Role


class CourseStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class CourseLevel(str, enum.Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    ALL_LEVELS = "ALL_LEVELS"


class LessonType(str, enum.Enum):
    VIDEO = "VIDEO"
    TEXT = "TEXT"
    QUIZ = "QUIZ"
    DOCUMENT = "DOCUMENT"


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, enum.Enum):
    FREE = "FREE"
    PENDING = "PENDING"
    PAID = "PAID"


class PaymentMethod(str, enum.Enum):
    FREE = "FREE"
    PAYSTACK = "PAYSTACK"


class LessonProgressStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class VoteType(str, enum.Enum):
    HELPFUL = "HELPFUL"
    UNHELPFUL = "UNHELPFUL"


class ReportStatus(str, enum.Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class NotificationType(str, enum.Enum):
    COURSE_UPDATE = "COURSE_UPDATE"
    ASSIGNMENT_DUE = "ASSIGNMENT_DUE"
    QUIZ_GRADED = "QUIZ_GRADED"
    NEW_MESSAGE = "NEW_MESSAGE"
    ENROLLMENT = "ENROLLMENT"
    CERTIFICATE = "CERTIFICATE"
    ANNOUNCEMENT = "ANNOUNCEMENT"
    REMINDER = "REMINDER"


class NotificationPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationCategory(str, enum.Enum):
    ACADEMIC = "ACADEMIC"
    SYSTEM = "SYSTEM"
    SOCIAL = "SOCIAL"
    ADMINISTRATIVE = "ADMINISTRATIVE"


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


# SQLAlchemy Enum instances (reuse across models to avoid duplicate type creation)
user_role_enum = SAEnum(Role, name="user_role")
course_status_enum = SAEnum(CourseStatus, name="course_status")
course_level_enum = SAEnum(CourseLevel, name="course_level")
lesson_type_enum = SAEnum(LessonType, name="lesson_type")
enrollment_status_enum = SAEnum(EnrollmentStatus, name="enrollment_status")
payment_status_enum = SAEnum(PaymentStatus, name="payment_status")
lesson_progress_status_enum = SAEnum(LessonProgressStatus, name="lesson_progress_status")
vote_type_enum = SAEnum(VoteType, name="vote_type")
report_status_enum = SAEnum(ReportStatus, name="report_status")
notification_type_enum = SAEnum(NotificationType, name="notification_type")
notification_priority_enum = SAEnum(NotificationPriority, name="notification_priority")
notification_category_enum = SAEnum(NotificationCategory, name="notification_category")
transaction_status_enum = SAEnum(TransactionStatus, name="transaction_status")
