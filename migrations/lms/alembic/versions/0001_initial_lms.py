"""initial lms schema

Revision ID: 0001_initial_lms
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = '0001_initial_lms'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('USER', 'STUDENT', 'INSTRUCTOR', 'ADMIN', name='user_role')
course_status = sa.Enum('DRAFT', 'PUBLISHED', 'ARCHIVED', name='course_status')
course_level = sa.Enum('BEGINNER', 'INTERMEDIATE', 'ADVANCED', 'ALL_LEVELS', name='course_level')
lesson_type = sa.Enum('VIDEO', 'TEXT', 'QUIZ', 'DOCUMENT', name='lesson_type')
enrollment_status = sa.Enum('ACTIVE', 'COMPLETED', name='enrollment_status')
payment_status = sa.Enum('FREE', 'PENDING', 'PAID', name='payment_status')
lesson_progress_status = sa.Enum('NOT_STARTED', 'IN_PROGRESS', 'COMPLETED', name='lesson_progress_status')
vote_type = sa.Enum('HELPFUL', 'UNHELPFUL', name='vote_type')
report_status = sa.Enum('PENDING', 'RESOLVED', 'DISMISSED', name='report_status')
notification_type = sa.Enum(
    'COURSE_UPDATE', 'ASSIGNMENT_DUE', 'QUIZ_GRADED', 'NEW_MESSAGE',
    'ENROLLMENT', 'CERTIFICATE', 'ANNOUNCEMENT', 'REMINDER',
    name='notification_type',
)
notification_priority = sa.Enum('LOW', 'MEDIUM', 'HIGH', 'URGENT', name='notification_priority')
notification_category = sa.Enum('ACADEMIC', 'SYSTEM', 'SOCIAL', 'ADMINISTRATIVE', name='notification_category')
transaction_status = sa.Enum('PENDING', 'PAID', 'FAILED', name='transaction_status')

_ENUMS = (
    user_role, course_status, course_level, lesson_type, enrollment_status, payment_status,
    lesson_progress_status, vote_type, report_status, notification_type, notification_priority,
    notification_category, transaction_status,
)


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', sa.Uuid(), primary_key=True),
        sa.Column('external_id', sa.String(length=255), nullable=False, unique=True),
        sa.Column('email', sa.String(length=320), nullable=False, server_default=''),
        sa.Column('name', sa.String(length=200), nullable=True),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('role', user_role, nullable=False, server_default='USER'),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('email_notifications', sa.Boolean(), nullable=False, server_default='true'),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    op.create_table(
        'courses',
        sa.Column('course_id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(length=300), nullable=False),
        sa.Column('slug', sa.String(length=300), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('short_description', sa.String(length=500), nullable=True),
        sa.Column('instructor_id', sa.Uuid(), sa.ForeignKey('users.user_id', ondelete='RESTRICT'), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='NGN'),
        sa.Column('level', course_level, nullable=False, server_default='BEGINNER'),
        sa.Column('status', course_status, nullable=False, server_default='DRAFT'),
        sa.Column('thumbnail_url', sa.String(length=500), nullable=True),
        sa.Column('average_rating', sa.Numeric(2, 1), nullable=False, server_default='0'),
        sa.Column('total_reviews', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('enrollment_count', sa.Integer(), nullable=False, server_default='0'),
        _ts('published_at', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_courses_instructor_id', 'courses', ['instructor_id'])
    op.create_index('ix_courses_status', 'courses', ['status'])
    op.create_index('ix_courses_created_at', 'courses', ['created_at'])

    op.create_table(
        'course_modules',
        sa.Column('module_id', sa.Uuid(), primary_key=True),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(length=300), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        _ts('created_at'),
    )
    op.create_index('ix_course_modules_course_id', 'course_modules', ['course_id'])

    op.create_table(
        'lessons',
        sa.Column('lesson_id', sa.Uuid(), primary_key=True),
        sa.Column('module_id', sa.Uuid(), sa.ForeignKey('course_modules.module_id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(length=300), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('lesson_type', lesson_type, nullable=False, server_default='VIDEO'),
        sa.Column('video_url', sa.String(length=500), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('duration_secs', sa.Integer(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('is_free', sa.Boolean(), nullable=False, server_default='false'),
        _ts('created_at'),
    )
    op.create_index('ix_lessons_module_id', 'lessons', ['module_id'])

    op.create_table(
        'quizzes',
        sa.Column('quiz_id', sa.Uuid(), primary_key=True),
        sa.Column('lesson_id', sa.Uuid(), sa.ForeignKey('lessons.lesson_id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('title', sa.String(length=300), nullable=False),
        sa.Column('questions', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('passing_score', sa.SmallInteger(), nullable=False, server_default='70'),
        sa.Column('max_attempts', sa.SmallInteger(), nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_quizzes_lesson_id', 'quizzes', ['lesson_id'])

    op.create_table(
        'quiz_attempts',
        sa.Column('attempt_id', sa.Uuid(), primary_key=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.quiz_id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('attempt_number', sa.SmallInteger(), nullable=False),
        sa.Column('answers', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('score', sa.SmallInteger(), nullable=False),
        sa.Column('passed', sa.Boolean(), nullable=False),
        sa.Column('points_earned', sa.SmallInteger(), nullable=False),
        sa.Column('points_possible', sa.SmallInteger(), nullable=False),
        _ts('submitted_at'),
        sa.UniqueConstraint('quiz_id', 'user_id', 'attempt_number', name='uq_quiz_attempt_number'),
    )
    op.create_index('ix_quiz_attempts_quiz_user', 'quiz_attempts', ['quiz_id', 'user_id'])

    op.create_table(
        'enrollments',
        sa.Column('enrollment_id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', enrollment_status, nullable=False, server_default='ACTIVE'),
        sa.Column('payment_status', payment_status, nullable=False, server_default='FREE'),
        sa.Column('payment_reference', sa.String(length=100), nullable=True),
        sa.Column('amount_paid', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        _ts('enrolled_at'),
        _ts('last_accessed_at', nullable=True),
        _ts('completed_at', nullable=True),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_enrollments_user_course'),
    )
    op.create_index('ix_enrollments_user_id', 'enrollments', ['user_id'])
    op.create_index('ix_enrollments_course_id', 'enrollments', ['course_id'])
    op.create_index('ix_enrollments_status', 'enrollments', ['status'])

    op.create_table(
        'lesson_progress',
        sa.Column('progress_id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('lesson_id', sa.Uuid(), sa.ForeignKey('lessons.lesson_id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', lesson_progress_status, nullable=False, server_default='NOT_STARTED'),
        sa.Column('current_time_secs', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('watch_percentage', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('time_spent_secs', sa.Integer(), nullable=False, server_default='0'),
        _ts('completed_at', nullable=True),
        _ts('last_watched_at'),
        sa.UniqueConstraint('user_id', 'lesson_id', name='uq_lesson_progress_user_lesson'),
    )
    op.create_index('ix_lesson_progress_user_course', 'lesson_progress', ['user_id', 'course_id'])

    op.create_table(
        'reviews',
        sa.Column('review_id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='CASCADE'), nullable=False),
        sa.Column('rating', sa.SmallInteger(), nullable=False),
        sa.Column('review_text', sa.Text(), nullable=True),
        sa.Column('is_anonymous', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('helpful_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unhelpful_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_reported', sa.Boolean(), nullable=False, server_default='false'),
        _ts('created_at'),
        _ts('updated_at'),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_reviews_user_course'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_reviews_rating_range'),
    )
    op.create_index('ix_reviews_course_id', 'reviews', ['course_id'])
    op.create_index('ix_reviews_created_at', 'reviews', ['created_at'])

    op.create_table(
        'review_votes',
        sa.Column('vote_id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('review_id', sa.Uuid(), sa.ForeignKey('reviews.review_id', ondelete='CASCADE'), nullable=False),
        sa.Column('vote_type', vote_type, nullable=False),
        _ts('created_at'),
        sa.UniqueConstraint('user_id', 'review_id', name='uq_review_votes_user_review'),
    )
    op.create_index('ix_review_votes_review_id', 'review_votes', ['review_id'])

    op.create_table(
        'review_reports',
        sa.Column('report_id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('review_id', sa.Uuid(), sa.ForeignKey('reviews.review_id', ondelete='CASCADE'), nullable=False),
        sa.Column('reason', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', report_status, nullable=False, server_default='PENDING'),
        _ts('created_at'),
        sa.UniqueConstraint('user_id', 'review_id', name='uq_review_reports_user_review'),
    )
    op.create_index('ix_review_reports_status', 'review_reports', ['status'])

    op.create_table(
        'notifications',
        sa.Column('notification_id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', notification_type, nullable=False),
        sa.Column('category', notification_category, nullable=False, server_default='SYSTEM'),
        sa.Column('priority', notification_priority, nullable=False, server_default='MEDIUM'),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('action_url', sa.String(length=500), nullable=True),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        _ts('read_at', nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_notifications_user_created', 'notifications', ['user_id', 'created_at'])
    op.create_index('ix_notifications_user_is_read', 'notifications', ['user_id', 'is_read'])

    op.create_table(
        'payment_transactions',
        sa.Column('transaction_id', sa.Uuid(), primary_key=True),
        sa.Column('reference', sa.String(length=100), nullable=False, unique=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.course_id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', transaction_status, nullable=False, server_default='PENDING'),
        sa.Column('authorization_url', sa.String(length=500), nullable=True),
        _ts('paid_at', nullable=True),
        _ts('created_at'),
    )
    op.create_index('ix_payment_transactions_user_course', 'payment_transactions', ['user_id', 'course_id'])
    op.create_index('ix_payment_transactions_status', 'payment_transactions', ['status'])


def downgrade() -> None:
    for table in (
        'payment_transactions', 'notifications', 'review_reports', 'review_votes', 'reviews',
        'lesson_progress', 'enrollments', 'quiz_attempts', 'quizzes', 'lessons',
        'course_modules', 'courses', 'users',
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_type in _ENUMS:
        enum_type.drop(bind, checkfirst=True)
