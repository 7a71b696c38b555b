import uuid
from unittest.mock import AsyncMock, patch

import pytest

from student_registry.core.exceptions import UpstreamFailure
from student_registry.core.security import create_access_token

UPLOAD_TARGET = "student_registry.services.student_service.upload_profile_image"


async def create(client, headers, **fields):
    data = {"fullName": "Bob Student", "email": "bob@school.edu"}
    data.update(fields)
    return await client.post("/api/students", data=data, headers=headers)


async def bearer(client, signup, email):
    token, user = await signup(client, email=email)
    return {"Authorization": f"Bearer {token}"}, user


# ------------------------------------------------------------
# ACCESS CONTROL
# ------------------------------------------------------------
@pytest.mark.asyncio
async def test_students_require_token(client):
    res = await client.get("/api/students")
    assert res.status_code == 401
    assert res.json()["success"] is False


@pytest.mark.asyncio
async def test_students_require_authority_role(client):
    token = create_access_token(subject=str(uuid.uuid4()), data={"role": "member"})
    res = await client.get("/api/students", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 403
    assert res.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_bad_token_is_401_not_403(client):
    res = await client.post(
        "/api/students",
        data={"fullName": "X"},
        headers={"Authorization": "Bearer broken"},
    )
    assert res.status_code == 401


# ------------------------------------------------------------
# CREATE
# ------------------------------------------------------------
@pytest.mark.asyncio
async def test_create_student(client, signup):
    headers, user = await bearer(client, signup, "alice@school.edu")

    res = await create(
        client, headers,
        phone="+1 (555) 123-4567",
        dateOfBirth="2004-05-06",
        gender="Female",
        courseOrDepartment="Physics",
        batchOrYear="2026",
        address="12 College Road",
    )
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["fullName"] == "Bob Student"
    assert data["createdBy"] == user["id"]
    assert data["dateOfBirth"] == "2004-05-06"
    assert data["gender"] == "Female"
    assert data["profileImageUrl"] is None
    assert data["createdAt"] and data["updatedAt"]


@pytest.mark.asyncio
async def test_create_reports_every_violation(client, auth_headers):
    res = await client.post(
        "/api/students",
        data={"phone": "abc", "gender": "Unknown", "address": "x" * 501},
        headers=auth_headers,
    )
    assert res.status_code == 400
    errors = res.json()["errors"]
    assert "Full name is required" in errors
    assert "Email is required" in errors
    assert "Please provide a valid phone number" in errors
    assert "Gender must be one of Male, Female, Other" in errors
    assert "Address cannot be more than 500 characters" in errors


@pytest.mark.asyncio
async def test_create_rejects_long_name_and_bad_email(client, auth_headers):
    res = await client.post(
        "/api/students",
        data={"fullName": "n" * 101, "email": "nope"},
        headers=auth_headers,
    )
    assert res.status_code == 400
    assert sorted(res.json()["errors"]) == sorted([
        "Name cannot be more than 100 characters",
        "Please provide a valid email",
    ])


@pytest.mark.asyncio
async def test_create_with_image(client, auth_headers):
    with patch(UPLOAD_TARGET, new=AsyncMock(return_value="https://cdn.test/a.png")) as mock_upload:
        res = await client.post(
            "/api/students",
            data={"fullName": "Pic Student", "email": "pic@school.edu"},
            files={"profileImage": ("a.png", b"\x89PNG fake", "image/png")},
            headers=auth_headers,
        )
    assert res.status_code == 201
    assert res.json()["data"]["profileImageUrl"] == "https://cdn.test/a.png"
    mock_upload.assert_awaited_once()
    assert mock_upload.call_args[0][0] == b"\x89PNG fake"


@pytest.mark.asyncio
async def test_failed_upload_creates_nothing(client, auth_headers):
    with patch(UPLOAD_TARGET, new=AsyncMock(side_effect=UpstreamFailure("Failed to upload image"))):
        res = await client.post(
            "/api/students",
            data={"fullName": "Pic Student", "email": "pic@school.edu"},
            files={"profileImage": ("a.png", b"\x89PNG fake", "image/png")},
            headers=auth_headers,
        )
    assert res.status_code == 502

    listing = await client.get("/api/students", headers=auth_headers)
    assert listing.json()["count"] == 0


# ------------------------------------------------------------
# LIST
# ------------------------------------------------------------
@pytest.mark.asyncio
async def test_list_is_scoped_and_newest_first(client, signup):
    alice, _ = await bearer(client, signup, "alice@school.edu")
    bob, _ = await bearer(client, signup, "bob@school.edu")

    first = (await create(client, alice, fullName="First")).json()["data"]
    second = (await create(client, alice, fullName="Second")).json()["data"]
    await create(client, bob, fullName="Not Yours")

    res = await client.get("/api/students", headers=alice)
    body = res.json()
    assert res.status_code == 200
    assert body["count"] == 2
    assert [s["id"] for s in body["data"]] == [second["id"], first["id"]]

    third = (await create(client, alice, fullName="Third")).json()["data"]
    res = await client.get("/api/students", headers=alice)
    assert res.json()["data"][0]["id"] == third["id"]


# ------------------------------------------------------------
# OWNERSHIP
# ------------------------------------------------------------
@pytest.mark.asyncio
async def test_other_users_records_are_not_found(client, signup):
    alice, _ = await bearer(client, signup, "alice@school.edu")
    mallory, _ = await bearer(client, signup, "mallory@school.edu")

    student_id = (await create(client, alice)).json()["data"]["id"]

    get_res = await client.get(f"/api/students/{student_id}", headers=mallory)
    put_res = await client.put(f"/api/students/{student_id}", data={"fullName": "Hijacked"}, headers=mallory)
    del_res = await client.delete(f"/api/students/{student_id}", headers=mallory)
    missing = await client.get(f"/api/students/{uuid.uuid4()}", headers=mallory)

    for res in (get_res, put_res, del_res):
        assert res.status_code == 404
        assert res.json() == missing.json()

    still_there = await client.get(f"/api/students/{student_id}", headers=alice)
    assert still_there.status_code == 200
    assert still_there.json()["data"]["fullName"] == "Bob Student"


@pytest.mark.asyncio
async def test_malformed_id_is_not_found(client, auth_headers):
    res = await client.get("/api/students/not-a-uuid", headers=auth_headers)
    assert res.status_code == 404


# ------------------------------------------------------------
# UPDATE
# ------------------------------------------------------------
@pytest.mark.asyncio
async def test_update_merges_fields(client, auth_headers):
    created = (await create(client, auth_headers, phone="5551234567", batchOrYear="2025")).json()["data"]

    res = await client.put(
        f"/api/students/{created['id']}",
        data={"fullName": "Bob Renamed"},
        headers=auth_headers,
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["fullName"] == "Bob Renamed"
    assert data["email"] == "bob@school.edu"
    assert data["phone"] == "5551234567"
    assert data["batchOrYear"] == "2025"
    assert data["createdBy"] == created["createdBy"]
    assert data["updatedAt"] >= created["updatedAt"]


@pytest.mark.asyncio
async def test_update_empty_string_clears_optional_field(client, auth_headers):
    created = (await create(client, auth_headers, phone="5551234567")).json()["data"]

    res = await client.put(
        f"/api/students/{created['id']}",
        data={"phone": ""},
        headers=auth_headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["phone"] is None


@pytest.mark.asyncio
async def test_update_revalidates(client, auth_headers):
    created = (await create(client, auth_headers)).json()["data"]

    res = await client.put(
        f"/api/students/{created['id']}",
        data={"fullName": "", "email": "broken"},
        headers=auth_headers,
    )
    assert res.status_code == 400
    assert len(res.json()["errors"]) == 2


@pytest.mark.asyncio
async def test_update_image_preserved_or_replaced(client, auth_headers):
    with patch(UPLOAD_TARGET, new=AsyncMock(return_value="https://cdn.test/old.png")):
        created = (await client.post(
            "/api/students",
            data={"fullName": "Pic", "email": "pic@school.edu"},
            files={"profileImage": ("old.png", b"old", "image/png")},
            headers=auth_headers,
        )).json()["data"]

    with patch(UPLOAD_TARGET, new=AsyncMock()) as mock_upload:
        kept = await client.put(
            f"/api/students/{created['id']}", data={"batchOrYear": "2027"}, headers=auth_headers
        )
    mock_upload.assert_not_awaited()
    assert kept.json()["data"]["profileImageUrl"] == "https://cdn.test/old.png"

    with patch(UPLOAD_TARGET, new=AsyncMock(return_value="https://cdn.test/new.png")):
        replaced = await client.put(
            f"/api/students/{created['id']}",
            data={"batchOrYear": "2028"},
            files={"profileImage": ("new.png", b"new", "image/png")},
            headers=auth_headers,
        )
    assert replaced.json()["data"]["profileImageUrl"] == "https://cdn.test/new.png"


# ------------------------------------------------------------
# DELETE / END TO END
# ------------------------------------------------------------
@pytest.mark.asyncio
async def test_end_to_end_lifecycle(client, signup):
    token, alice = await signup(client, email="alice@x.com", password="secret1", full_name="Alice")
    headers = {"Authorization": f"Bearer {token}"}

    record = (await client.post(
        "/api/students", data={"fullName": "Bob", "email": "bob@x.com"}, headers=headers
    )).json()["data"]
    assert record["createdBy"] == alice["id"]

    fetched = await client.get(f"/api/students/{record['id']}", headers=headers)
    assert fetched.json()["data"] == record

    deleted = await client.delete(f"/api/students/{record['id']}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True, "message": "Student deleted successfully"}

    gone = await client.get(f"/api/students/{record['id']}", headers=headers)
    assert gone.status_code == 404
    assert gone.json()["error"] == "not_found"


# ------------------------------------------------------------
# STANDALONE UPLOAD
# ------------------------------------------------------------
@pytest.mark.asyncio
async def test_upload_image_requires_file(client, auth_headers):
    res = await client.post("/api/students/upload-image", headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Please upload an image"


@pytest.mark.asyncio
async def test_upload_image_returns_url(client, auth_headers):
    with patch(UPLOAD_TARGET, new=AsyncMock(return_value="https://cdn.test/solo.jpg")):
        res = await client.post(
            "/api/students/upload-image",
            files={"image": ("solo.jpg", b"jpegbytes", "image/jpeg")},
            headers=auth_headers,
        )
    assert res.status_code == 200
    assert res.json() == {"success": True, "url": "https://cdn.test/solo.jpg"}


# ------------------------------------------------------------
# UNEXPECTED ERRORS
# ------------------------------------------------------------
@pytest.mark.asyncio
async def test_unexpected_error_is_generic_500(client, auth_headers):
    from httpx import ASGITransport, AsyncClient
    from student_registry.main import app

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        with patch(
            "student_registry.services.student_service.list_students",
            new=AsyncMock(side_effect=RuntimeError("db exploded at 10.0.0.5")),
        ):
            res = await ac.get("/api/students", headers=auth_headers)

    assert res.status_code == 500
    assert res.json()["message"] == "Internal Server Error"
    assert "10.0.0.5" not in res.text


# ------------------------------------------------------------
# JSON BODIES
# ------------------------------------------------------------
@pytest.mark.asyncio
async def test_create_from_json_body(client, auth_headers):
    res = await client.post(
        "/api/students",
        json={"fullName": "Json Student", "email": "json@school.edu", "batchOrYear": 2026},
        headers=auth_headers,
    )
    assert res.status_code == 201
    data = res.json()["data"]
    assert data["fullName"] == "Json Student"
    assert data["email"] == "json@school.edu"
    assert data["batchOrYear"] == "2026"


@pytest.mark.asyncio
async def test_update_from_json_body(client, auth_headers):
    created = (await create(client, auth_headers, phone="5551234567")).json()["data"]

    res = await client.put(
        f"/api/students/{created['id']}",
        json={"fullName": "Renamed", "phone": None},
        headers=auth_headers,
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["fullName"] == "Renamed"
    assert data["email"] == "bob@school.edu"
    assert data["phone"] is None


@pytest.mark.asyncio
async def test_malformed_json_body_is_rejected(client, auth_headers):
    res = await client.post(
        "/api/students",
        content=b"{not json",
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert res.status_code == 400
    assert res.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_unsupported_body_type_is_rejected(client, auth_headers):
    created = (await create(client, auth_headers)).json()["data"]

    res = await client.put(
        f"/api/students/{created['id']}",
        content=b"fullName=Renamed",
        headers={**auth_headers, "Content-Type": "text/plain"},
    )
    assert res.status_code == 400

    unchanged = await client.get(f"/api/students/{created['id']}", headers=auth_headers)
    assert unchanged.json()["data"]["fullName"] == "Bob Student"
