"""Domain exception classes for the LMS service.

These are raised by service-layer code and caught by controllers
to map to appropriate HTTP responses.
"""


class UserNotFoundError(Exception):
    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"User not found: {identifier}")


class CourseNotFoundError(Exception):
    """Raised when a course cannot be found by ID or slug."""

    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"Course not found: {identifier}")


class ModuleNotFoundError(Exception):
    def __init__(self, module_id: str = ""):
        self.module_id = module_id
        super().__init__(f"Module not found: {module_id}")


class LessonNotFoundError(Exception):
    def __init__(self, lesson_id: str = ""):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson not found: {lesson_id}")


class EnrollmentNotFoundError(Exception):
    def __init__(self, identifier: str = ""):
        self.identifier = identifier
        super().__init__(f"Enrollment not found: {identifier}")


class ReviewNotFoundError(Exception):
    def __init__(self, review_id: str = ""):
        self.review_id = review_id
        super().__init__(f"Review not found: {review_id}")


class NotificationNotFoundError(Exception):
    def __init__(self, notification_id: str = ""):
        self.notification_id = notification_id
        super().__init__(f"Notification not found: {notification_id}")


class QuizNotFoundError(Exception):
    def __init__(self, quiz_id: str = ""):
        self.quiz_id = quiz_id
        super().__init__(f"Quiz not found: {quiz_id}")


class TransactionNotFoundError(Exception):
    def __init__(self, reference: str = ""):
        self.reference = reference
        super().__init__(f"Transaction not found: {reference}")


# ---------------------------------------------------------------------------
# Permission
# ---------------------------------------------------------------------------


class InsufficientRoleError(Exception):
    """Raised when the principal's role ranks below the one an operation requires."""

    def __init__(self, required: str = ""):
        self.required = required
        super().__init__(f"Requires role {required} or higher")


class NotCourseOwnerError(Exception):
    """Raised when a non-owner, non-admin tries to modify a course."""


class NotReviewAuthorError(Exception):
    """Raised when someone other than the author (or an admin) edits or deletes a review."""


class CannotChangeOwnRoleError(Exception):
    """Raised when an admin tries to change their own role."""


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


class AlreadyEnrolledError(Exception):
    """Raised when user tries to enroll in a course they are already enrolled in."""


class NotEnrolledError(Exception):
    """Raised when an operation requires an enrollment that does not exist."""


class CourseNotPublishedError(Exception):
    """Raised when enrollment is attempted on a non-PUBLISHED course."""


class PaymentMethodMismatchError(Exception):
    """Raised when the payment method does not fit the course price."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class LessonNotManuallyCompletableError(Exception):
    """Raised when a video or quiz lesson is marked complete directly."""

    def __init__(self, lesson_type: str):
        self.lesson_type = lesson_type
        super().__init__(f"{lesson_type} lessons cannot be marked complete directly")


class InvalidStatusTransitionError(Exception):
    """Raised when a course status transition is not allowed."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {current} to {target}")


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class AlreadyReviewedError(Exception):
    """Raised when user already reviewed this course."""


class SelfVoteError(Exception):
    """Raised when the author votes on their own review."""


class SelfReportError(Exception):
    """Raised when the author reports their own review."""


class AlreadyReportedError(Exception):
    """Raised when the user already reported this review."""


class VoteConflictError(Exception):
    """Raised when the caller's vote changed between read and write."""


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------


class QuizAlreadyExistsError(Exception):
    """Raised when trying to create a quiz for a lesson that already has one."""


class MaxAttemptsReachedError(Exception):
    """Raised when user has exhausted quiz attempt limit."""


class InvalidSubmissionError(Exception):
    """Raised when the submitted answers do not line up with the quiz questions."""

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Payments / external providers
# ---------------------------------------------------------------------------


class CourseIsFreeError(Exception):
    """Raised when a payment is initialized for a free course."""


class PaymentGatewayError(Exception):
    """Raised when Paystack is unreachable or returns an error."""


class PaymentVerificationError(Exception):
    """Raised when a gateway transaction is not successful or its amount does not match."""

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(detail)


class InvalidWebhookSignatureError(Exception):
    """Raised when a webhook body does not match its HMAC signature."""


class IdentityServiceError(Exception):
    """Raised when the identity provider API call fails."""


class StorageError(Exception):
    """Raised when an object-storage upload fails."""


class InvalidUploadError(Exception):
    """Raised when an upload breaks its type-specific rules."""

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(detail)


class UploadTooLargeError(Exception):
    """Raised when an upload exceeds the size limit for its type."""

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        super().__init__(f"File exceeds the maximum allowed size of {max_bytes // (1024 * 1024)} MB")
