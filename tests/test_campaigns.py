from datetime import datetime, timedelta


def dates(start_offset=0, end_offset=10):
    now = datetime.utcnow()
    return (
        (now + timedelta(days=start_offset)).isoformat(),
        (now + timedelta(days=end_offset)).isoformat(),
    )


def create(client, headers, course_ids, **overrides):
    start, end = dates()
    payload = {
        "title": "Summer Sale",
        "description": "Selected courses at summer prices",
        "start_date": start,
        "end_date": end,
        "featured_courses": course_ids,
        "is_active": True,
    }
    payload.update(overrides)
    return client.post("/campaigns", json=payload, headers=headers)


def test_create_and_list_with_titles(client, admin, course):
    _, headers = admin
    response = create(client, headers, [course["course_id"]])
    assert response.status_code == 201

    listing = client.get("/campaigns", headers=headers).json()
    assert len(listing) == 1
    assert listing[0]["featured_courses"] == [{"course_id": course["course_id"], "title": course["title"]}]


def test_list_returns_active_only(client, admin, course):
    _, headers = admin
    create(client, headers, [course["course_id"]], is_active=False)
    assert client.get("/campaigns", headers=headers).json() == []


def test_end_must_follow_start(client, admin, course):
    _, headers = admin
    start, _ = dates()
    response = create(client, headers, [course["course_id"]], end_date=start)
    assert response.status_code == 400


def test_first_missing_course_is_reported(client, admin, course):
    _, headers = admin
    response = create(client, headers, [course["course_id"], "CRS_GONE", "CRS_ALSO_GONE"])
    assert response.status_code == 400
    assert "CRS_GONE" in response.json()["detail"]
    assert "CRS_ALSO_GONE" not in response.json()["detail"]


def test_featured_courses_required(client, admin):
    _, headers = admin
    assert create(client, headers, []).status_code == 400


def test_update_checks_dates_against_stored_values(client, admin, course):
    _, headers = admin
    campaign = create(client, headers, [course["course_id"]]).json()
    too_late, _ = dates(start_offset=20)
    response = client.put(
        f"/campaigns/{campaign['campaign_id']}", json={"start_date": too_late}, headers=headers
    )
    assert response.status_code == 400

    response = client.put(
        f"/campaigns/{campaign['campaign_id']}", json={"title": "Winter Sale"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Winter Sale"


def test_get_and_delete(client, admin, course):
    _, headers = admin
    campaign = create(client, headers, [course["course_id"]]).json()
    campaign_id = campaign["campaign_id"]

    assert client.get(f"/campaigns/{campaign_id}", headers=headers).json()["title"] == "Summer Sale"
    assert client.delete(f"/campaigns/{campaign_id}", headers=headers).status_code == 200
    assert client.get(f"/campaigns/{campaign_id}", headers=headers).status_code == 404


def test_campaigns_admin_only(client, instructor, course):
    _, headers = instructor
    assert create(client, headers, [course["course_id"]]).status_code == 403
    assert client.get("/campaigns", headers=headers).status_code == 403
