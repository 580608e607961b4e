from decimal import Decimal
from uuid import uuid4

from httpx import AsyncClient

from app.lms import service as lms_service
from app.models.enums import PaymentMethod
from app.payments import paystack as payments_paystack
from app.reviews import service as reviews_service
from conftest import auth_headers, course_lessons, make_token, principal_for
from shared.constants import Role


async def test_health(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "lms"}


async def test_missing_token_is_401_envelope(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/v1/users/me")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "unauthorized"
    assert body["request_id"]


async def test_garbage_token_is_401(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_first_request_creates_user_with_user_role(async_client: AsyncClient) -> None:
    token = make_token("idp_fresh", "fresh@example.com", given_name="Ngozi")
    response = await async_client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["role"] == "USER"
    assert body["data"]["email"] == "fresh@example.com"

    upgraded = await async_client.post(
        "/api/v1/users/me/student-role", headers={"Authorization": f"Bearer {token}"}
    )
    assert upgraded.json()["data"]["role"] == "STUDENT"


async def test_student_cannot_create_course(async_client: AsyncClient, make_user, db_session) -> None:
    student = await make_user(Role.STUDENT)
    await db_session.commit()
    response = await async_client.post(
        "/api/v1/lms/courses", json={"title": "Sneaky"}, headers=auth_headers(student)
    )
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


async def test_validation_errors_are_400_with_details(async_client: AsyncClient, make_user, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    await db_session.commit()
    response = await async_client.post(
        "/api/v1/lms/courses", json={"title": "", "price": -5}, headers=auth_headers(instructor)
    )
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_error"
    fields = {detail["field"] for detail in body["details"]}
    assert {"title", "price"} <= fields


async def test_enroll_and_get_notified(async_client: AsyncClient, make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor)
    await db_session.commit()

    response = await async_client.post(
        "/api/v1/lms/enrollments", json={"course_id": str(course.course_id)}, headers=auth_headers(student)
    )
    assert response.status_code == 201
    assert response.json()["data"]["payment_status"] == "FREE"

    duplicate = await async_client.post(
        "/api/v1/lms/enrollments", json={"course_id": str(course.course_id)}, headers=auth_headers(student)
    )
    assert duplicate.status_code == 409

    notifications = await async_client.get("/api/v1/notifications", headers=auth_headers(student))
    data = notifications.json()["data"]
    assert data["unread_count"] == 1
    assert data["items"][0]["type"] == "ENROLLMENT"


async def test_unknown_course_is_404(async_client: AsyncClient, make_user, db_session) -> None:
    student = await make_user(Role.STUDENT)
    await db_session.commit()
    response = await async_client.post(
        "/api/v1/lms/enrollments", json={"course_id": str(uuid4())}, headers=auth_headers(student)
    )
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


async def test_public_catalog_needs_no_token(async_client: AsyncClient, make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    await make_course(instructor, title="Open Course")
    await make_course(instructor, title="Secret Draft", publish=False)
    await db_session.commit()

    response = await async_client.get("/api/v1/lms/courses")
    assert response.status_code == 200
    titles = [c["title"] for c in response.json()["data"]["items"]]
    assert titles == ["Open Course"]


async def test_anonymous_review_hides_author(async_client: AsyncClient, make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    author = await make_user(Role.STUDENT)
    reader = await make_user(Role.STUDENT)
    course = await make_course(instructor)
    await lms_service.enroll(db_session, principal_for(author), course.course_id, PaymentMethod.FREE)
    await reviews_service.create_review(
        db_session, principal_for(author), course.course_id, rating=5, is_anonymous=True
    )
    await db_session.commit()

    url = f"/api/v1/lms/courses/{course.course_id}/reviews"
    as_reader = (await async_client.get(url, headers=auth_headers(reader))).json()["data"]["items"][0]
    assert as_reader["author"] is None
    assert as_reader["can_report"] is True
    assert as_reader["can_edit"] is False

    as_author = (await async_client.get(url, headers=auth_headers(author))).json()["data"]["items"][0]
    assert as_author["author"] is not None
    assert as_author["is_own"] is True
    assert as_author["can_report"] is False


async def test_self_vote_is_400(async_client: AsyncClient, make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    author = await make_user(Role.STUDENT)
    course = await make_course(instructor)
    await lms_service.enroll(db_session, principal_for(author), course.course_id, PaymentMethod.FREE)
    review = await reviews_service.create_review(db_session, principal_for(author), course.course_id, rating=4)
    await db_session.commit()

    response = await async_client.post(
        f"/api/v1/lms/reviews/{review.review_id}/vote",
        json={"vote_type": "HELPFUL"},
        headers=auth_headers(author),
    )
    assert response.status_code == 400


async def test_student_quiz_view_hides_answers(async_client: AsyncClient, make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor)
    lesson = (await course_lessons(db_session, course))[0]
    await lms_service.enroll(db_session, principal_for(student), course.course_id, PaymentMethod.FREE)
    await db_session.commit()

    created = await async_client.post(
        f"/api/v1/lms/lessons/{lesson.lesson_id}/quiz",
        json={
            "title": "Check",
            "questions": [
                {"question_type": "MULTIPLE_CHOICE", "question": "Pick A", "options": ["A", "B"], "correct_answer": 0}
            ],
        },
        headers=auth_headers(instructor),
    )
    assert created.status_code == 201
    quiz_id = created.json()["data"]["quiz_id"]

    view = await async_client.get(f"/api/v1/lms/quizzes/{quiz_id}", headers=auth_headers(student))
    assert view.status_code == 200
    assert "correct_answer" not in view.json()["data"]["questions"][0]

    answers = await async_client.get(f"/api/v1/lms/quizzes/{quiz_id}/answers", headers=auth_headers(student))
    assert answers.status_code == 403

    attempt = await async_client.post(
        f"/api/v1/lms/quizzes/{quiz_id}/attempts", json={"answers": [0]}, headers=auth_headers(student)
    )
    assert attempt.status_code == 201
    result = attempt.json()["data"]
    assert result["attempt"]["score"] == 100
    assert result["lesson_completed"] is True


async def test_dashboard_sections_follow_roles(async_client: AsyncClient, make_user, db_session) -> None:
    student = await make_user(Role.STUDENT)
    instructor = await make_user(Role.INSTRUCTOR)
    await db_session.commit()

    assert (await async_client.get("/api/v1/dashboard/student", headers=auth_headers(student))).status_code == 200
    assert (await async_client.get("/api/v1/dashboard/instructor", headers=auth_headers(student))).status_code == 403
    assert (await async_client.get("/api/v1/dashboard/instructor", headers=auth_headers(instructor))).status_code == 200
    assert (await async_client.get("/api/v1/dashboard/admin", headers=auth_headers(instructor))).status_code == 403


async def test_paid_course_enroll_directly_is_rejected(
    async_client: AsyncClient, make_user, make_course, db_session
) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor, price=Decimal("10000"))
    await db_session.commit()

    response = await async_client.post(
        "/api/v1/lms/enrollments", json={"course_id": str(course.course_id)}, headers=auth_headers(student)
    )
    assert response.status_code == 400


async def test_webhook_with_bad_signature_is_401(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/api/v1/payments/webhook",
        content=b'{"event":"charge.success","data":{}}',
        headers={"x-paystack-signature": "nope"},
    )
    assert response.status_code == 401


async def test_request_id_is_echoed_only_when_well_formed(async_client: AsyncClient) -> None:
    kept = await async_client.get("/health", headers={"X-Request-ID": "req-123.abc"})
    assert kept.headers["X-Request-ID"] == "req-123.abc"

    replaced = await async_client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
    assert replaced.headers["X-Request-ID"] != "bad id with spaces"
    assert len(replaced.headers["X-Request-ID"]) == 36


async def test_video_lesson_cannot_be_completed_directly(
    async_client: AsyncClient, make_user, make_course, db_session
) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor)
    lesson = (await course_lessons(db_session, course))[0]
    await lms_service.enroll(db_session, principal_for(student), course.course_id, PaymentMethod.FREE)
    await db_session.commit()

    response = await async_client.post(
        f"/api/v1/lms/lessons/{lesson.lesson_id}/complete", headers=auth_headers(student)
    )
    assert response.status_code == 400
    assert response.json()["success"] is False

    progress = await async_client.get(
        f"/api/v1/lms/courses/{course.course_id}/enrollment", headers=auth_headers(student)
    )
    data = progress.json()["data"]
    assert data["enrollment"]["progress"] == 0
    assert data["lessons"] == []


async def test_signed_non_json_webhook_is_400(async_client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr(payments_paystack, "verify_signature", lambda secret, body, signature: True)
    response = await async_client.post(
        "/api/v1/payments/webhook", content=b"<xml/>", headers={"x-paystack-signature": "signed"}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
