import asyncio

import pytest
from conftest import course_fields, cover_file, make_user
from pymongo.errors import DuplicateKeyError

from academy.enrollments.service import calculate_progress


def db_call(coro):
    return asyncio.run(coro)


# ==================== DIRECT ENROLL ====================

def test_direct_enroll(client, mock_db, student, published_course):
    user, headers = student
    course_id = published_course["course_id"]

    response = client.post(f"/courses/{course_id}/enroll", headers=headers)
    assert response.status_code == 201
    enrollment = response.json()["enrollment"]
    assert enrollment["payment_method"] == "direct"
    assert enrollment["payment_amount"] == 0
    assert enrollment["payment_status"] == "completed"

    stored_user = db_call(mock_db.users.find_one({"user_id": user["user_id"]}))
    assert stored_user["enrolled_courses"] == [course_id]
    stored_course = db_call(mock_db.courses.find_one({"course_id": course_id}))
    assert stored_course["enrollment_count"] == 1


def test_second_enroll_rejected_and_counters_unchanged(client, mock_db, student, published_course):
    user, headers = student
    course_id = published_course["course_id"]
    client.post(f"/courses/{course_id}/enroll", headers=headers)

    response = client.post(f"/courses/{course_id}/enroll", headers=headers)
    assert response.status_code == 400
    assert "already enrolled" in response.json()["detail"]

    assert db_call(mock_db.enrollments.count_documents({"course_id": course_id})) == 1
    stored_user = db_call(mock_db.users.find_one({"user_id": user["user_id"]}))
    assert stored_user["enrolled_courses"] == [course_id]
    stored_course = db_call(mock_db.courses.find_one({"course_id": course_id}))
    assert stored_course["enrollment_count"] == 1


def test_unique_pair_index_blocks_racing_insert(mock_db):
    pair = {"user_id": "USR_1", "course_id": "CRS_1", "is_active": True}
    db_call(mock_db.enrollments.insert_one({"enrollment_id": "ENR_1", **pair}))
    with pytest.raises(DuplicateKeyError):
        db_call(mock_db.enrollments.insert_one({"enrollment_id": "ENR_2", **pair}))


def test_direct_enroll_requires_published_course(client, student, course):
    _, headers = student
    assert client.post(f"/courses/{course['course_id']}/enroll", headers=headers).status_code == 400
    assert client.post("/courses/CRS_MISSING/enroll", headers=headers).status_code == 404


# ==================== PAYMENT ====================

def test_create_payment_form(client, mock_db, provider, student, published_course):
    user, headers = student
    response = client.post(
        "/payment/create-payment-form",
        json={"amount": 149.9, "course_id": published_course["course_id"]},
        headers=headers
    )
    assert response.status_code == 201
    body = response.json()
    assert body["token"] == "tok-1"
    assert body["payment_form"] == "<script>checkout</script>"

    request = provider.created[0]
    assert request["price"] == "149.90"
    assert request["buyer"]["id"] == user["user_id"]
    assert request["buyer"]["email"] == user["email"]
    assert request["basketItems"][0]["name"] == published_course["title"]
    assert request["paymentCard"]["cardNumber"] == "4000000000000001"

    payment = db_call(mock_db.payments.find_one({"token": "tok-1"}))
    assert payment["status"] == "pending"
    assert payment["user_id"] == user["user_id"]


@pytest.mark.parametrize("payload", [{"amount": 0}, {"amount": -10}, {}])
def test_invalid_amount_never_reaches_provider(client, provider, student, payload):
    _, headers = student
    response = client.post("/payment/create-payment-form", json=payload, headers=headers)
    assert response.status_code == 400
    assert provider.created == []


def test_confirm_payment_enrolls(client, mock_db, provider, student, published_course):
    user, headers = student
    course_id = published_course["course_id"]
    client.post("/payment/create-payment-form", json={"amount": 149.9, "course_id": course_id}, headers=headers)

    response = client.post(
        "/payment/confirm-payment", json={"payment_token": "tok-1", "course_id": course_id}, headers=headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["payment_status"] == "SUCCESS"
    assert body["enrollment"]["payment_method"] == "iyzipay"
    assert body["enrollment"]["payment_amount"] == 149.9

    payment = db_call(mock_db.payments.find_one({"token": "tok-1"}))
    assert payment["status"] == "completed"
    stored_user = db_call(mock_db.users.find_one({"user_id": user["user_id"]}))
    assert course_id in stored_user["enrolled_courses"]


def test_confirm_uses_course_from_pending_payment(client, provider, student, published_course):
    _, headers = student
    course_id = published_course["course_id"]
    client.post("/payment/create-payment-form", json={"amount": 149.9, "course_id": course_id}, headers=headers)

    body = client.post("/payment/confirm-payment", json={"payment_token": "tok-1"}, headers=headers).json()
    assert body["enrollment"]["course_id"] == course_id


def test_confirm_without_course_returns_confirmation_only(client, mock_db, provider, student):
    _, headers = student
    client.post("/payment/create-payment-form", json={"amount": 25}, headers=headers)

    response = client.post("/payment/confirm-payment", json={"payment_token": "tok-1"}, headers=headers)
    assert response.status_code == 200
    assert "enrollment" not in response.json()
    assert db_call(mock_db.enrollments.count_documents({})) == 0
    assert db_call(mock_db.payments.find_one({"token": "tok-1"}))["status"] == "completed"


def test_failed_payment_creates_no_enrollment(client, mock_db, provider, student, published_course):
    _, headers = student
    course_id = published_course["course_id"]
    client.post("/payment/create-payment-form", json={"amount": 149.9, "course_id": course_id}, headers=headers)
    provider.retrieve_result = {"status": "success", "paymentStatus": "FAILURE", "errorMessage": "Card declined"}

    response = client.post(
        "/payment/confirm-payment", json={"payment_token": "tok-1", "course_id": course_id}, headers=headers
    )
    assert response.status_code == 400
    assert "Card declined" in response.json()["detail"]
    assert db_call(mock_db.enrollments.count_documents({})) == 0
    assert db_call(mock_db.payments.find_one({"token": "tok-1"}))["status"] == "failed"


def test_confirm_for_already_enrolled_user(client, provider, student, published_course):
    _, headers = student
    course_id = published_course["course_id"]
    client.post(f"/courses/{course_id}/enroll", headers=headers)
    client.post("/payment/create-payment-form", json={"amount": 149.9, "course_id": course_id}, headers=headers)

    response = client.post(
        "/payment/confirm-payment", json={"payment_token": "tok-1", "course_id": course_id}, headers=headers
    )
    assert response.status_code == 400
    assert "already enrolled" in response.json()["detail"]


def test_confirm_requires_token(client, provider, student):
    _, headers = student
    response = client.post("/payment/confirm-payment", json={"payment_token": "  "}, headers=headers)
    assert response.status_code == 400
    assert provider.retrieved == []


def test_confirm_unknown_token(client, provider, student):
    _, headers = student
    response = client.post("/payment/confirm-payment", json={"payment_token": "tok-404"}, headers=headers)
    assert response.status_code == 404
    assert provider.retrieved == []


def test_confirm_foreign_payment_forbidden(client, mock_db, provider, student, published_course):
    _, headers = student
    client.post("/payment/create-payment-form", json={"amount": 10}, headers=headers)
    _, other_headers = make_user(mock_db)
    response = client.post("/payment/confirm-payment", json={"payment_token": "tok-1"}, headers=other_headers)
    assert response.status_code == 403


def publish_second_course(client, headers, category_id):
    course = client.post(
        "/courses",
        data=course_fields(category_id, title="Advanced Python", price="999"),
        files=cover_file(),
        headers=headers
    ).json()
    return client.put(f"/courses/{course['course_id']}/toggle-publish", headers=headers).json()["course"]


def test_completed_token_cannot_be_reused(client, mock_db, provider, instructor, student, category, published_course):
    _, instructor_headers = instructor
    _, headers = student
    course_id = published_course["course_id"]
    other = publish_second_course(client, instructor_headers, category["category_id"])
    client.post("/payment/create-payment-form", json={"amount": 149.9, "course_id": course_id}, headers=headers)

    first = client.post("/payment/confirm-payment", json={"payment_token": "tok-1"}, headers=headers)
    assert first.status_code == 200

    for payload in ({"payment_token": "tok-1"}, {"payment_token": "tok-1", "course_id": other["course_id"]}):
        response = client.post("/payment/confirm-payment", json=payload, headers=headers)
        assert response.status_code == 400
        assert "already been processed" in response.json()["detail"]

    assert db_call(mock_db.enrollments.count_documents({})) == 1
    assert len(provider.retrieved) == 1


def test_failed_token_cannot_be_confirmed_later(client, mock_db, provider, student, published_course):
    _, headers = student
    course_id = published_course["course_id"]
    client.post("/payment/create-payment-form", json={"amount": 149.9, "course_id": course_id}, headers=headers)
    provider.retrieve_result = {"status": "success", "paymentStatus": "FAILURE", "errorMessage": "Card declined"}
    client.post("/payment/confirm-payment", json={"payment_token": "tok-1"}, headers=headers)

    provider.retrieve_result = {"status": "success", "paymentStatus": "SUCCESS", "paidPrice": "149.90"}
    response = client.post("/payment/confirm-payment", json={"payment_token": "tok-1"}, headers=headers)
    assert response.status_code == 400
    assert db_call(mock_db.enrollments.count_documents({})) == 0
    assert db_call(mock_db.payments.find_one({"token": "tok-1"}))["status"] == "failed"


def test_confirm_rejects_course_other_than_paid_for(
    client, mock_db, provider, instructor, student, category, published_course
):
    _, instructor_headers = instructor
    _, headers = student
    other = publish_second_course(client, instructor_headers, category["category_id"])
    client.post(
        "/payment/create-payment-form",
        json={"amount": 149.9, "course_id": published_course["course_id"]},
        headers=headers
    )

    response = client.post(
        "/payment/confirm-payment", json={"payment_token": "tok-1", "course_id": other["course_id"]}, headers=headers
    )
    assert response.status_code == 400
    assert "does not match" in response.json()["detail"]
    assert provider.retrieved == []
    assert db_call(mock_db.payments.find_one({"token": "tok-1"}))["status"] == "pending"
    assert db_call(mock_db.enrollments.count_documents({})) == 0


# ==================== PROGRESS ====================

def build_curriculum(client, headers, course_id, lecture_count=3):
    section = client.post(f"/courses/{course_id}/sections", json={"title": "Basics"}, headers=headers).json()
    section_id = section["sections"][0]["section_id"]
    course = None
    for i in range(lecture_count):
        course = client.post(
            f"/courses/{course_id}/sections/{section_id}/lectures",
            json={"title": f"Lecture {i}", "duration": 5},
            headers=headers
        ).json()
    return [lecture["lecture_id"] for lecture in course["sections"][0]["lectures"]]


def test_lecture_progress(client, instructor, student, published_course):
    _, instructor_headers = instructor
    _, headers = student
    course_id = published_course["course_id"]
    lecture_ids = build_curriculum(client, instructor_headers, course_id)
    client.post(f"/courses/{course_id}/enroll", headers=headers)

    url = f"/enrollments/{course_id}/lectures/{{}}/complete"
    body = client.post(url.format(lecture_ids[0]), headers=headers).json()
    assert body["progress"] == 33.33
    assert body["enrollment"]["completed_at"] is None

    # completing the same lecture twice does not inflate progress
    assert client.post(url.format(lecture_ids[0]), headers=headers).json()["progress"] == 33.33

    client.post(url.format(lecture_ids[1]), headers=headers)
    body = client.post(url.format(lecture_ids[2]), headers=headers).json()
    assert body["progress"] == 100
    assert body["enrollment"]["completed_at"] is not None

    progress = client.get(f"/enrollments/{course_id}", headers=headers).json()
    assert progress["progress"] == 100
    assert len(progress["completed_lectures"]) == 3


def test_complete_unknown_lecture(client, student, published_course):
    _, headers = student
    course_id = published_course["course_id"]
    client.post(f"/courses/{course_id}/enroll", headers=headers)
    response = client.post(f"/enrollments/{course_id}/lectures/LEC_MISSING/complete", headers=headers)
    assert response.status_code == 404


def test_progress_requires_enrollment(client, instructor, student, published_course):
    _, instructor_headers = instructor
    _, headers = student
    course_id = published_course["course_id"]
    lecture_ids = build_curriculum(client, instructor_headers, course_id, lecture_count=1)
    assert client.get(f"/enrollments/{course_id}", headers=headers).status_code == 404
    response = client.post(f"/enrollments/{course_id}/lectures/{lecture_ids[0]}/complete", headers=headers)
    assert response.status_code == 404


def test_my_enrollments(client, student, published_course):
    _, headers = student
    client.post(f"/courses/{published_course['course_id']}/enroll", headers=headers)
    body = client.get("/enrollments/my", headers=headers).json()
    assert body["count"] == 1
    assert body["enrollments"][0]["course"]["title"] == published_course["title"]


def test_calculate_progress():
    assert calculate_progress(0, 0) == 0
    assert calculate_progress(1, 3) == 33.33
    assert calculate_progress(5, 4) == 100
