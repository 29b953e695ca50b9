from urllib.parse import quote

import pytest

from app.core.config import settings
from app.services.report_service import content_disposition

API = settings.API_PREFIX


@pytest.mark.asyncio
async def test_register_patient_normalizes_input(client, seed):
    response = await client.post(
        f"{API}/patients",
        json={
            "full_name": "  Kavya Rao ",
            "phone_number": "9876543210",
            "date_of_birth": "",
            "sex": "Female",
            "height": 162,
            "weight": 54.5,
        },
        headers=seed.headers["nurse"],
    )
    assert response.status_code == 201
    body = response.json()
    assert body["full_name"] == "Kavya Rao"
    assert body["date_of_birth"] is None
    assert body["height"] == "162"
    assert body["weight"] == "54.5"
    assert body["hospital_id"] == str(seed.hospital.id)


@pytest.mark.asyncio
async def test_duplicate_patient_conflicts(client, seed, flow):
    await flow.register_patient()
    response = await client.post(
        f"{API}/patients",
        json={"full_name": "Kavya Rao", "phone_number": "9876543210"},
        headers=seed.headers["admin"],
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_same_identity_allowed_in_another_hospital(client, seed, flow):
    await flow.register_patient()
    other = await flow.register_patient(by="other_nurse")
    assert other["hospital_id"] == str(seed.other_hospital.id)


@pytest.mark.asyncio
async def test_pharmacy_cannot_register_patients(client, seed):
    response = await client.post(
        f"{API}/patients",
        json={"full_name": "X", "phone_number": "1"},
        headers=seed.headers["pharmacist"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_phone_search_needs_five_digits(client, seed, flow):
    await flow.register_patient()
    response = await client.get(f"{API}/patients/search?phone_number=9876", headers=seed.headers["nurse"])
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_phone_search_matches_substring_within_hospital(client, seed, flow):
    await flow.register_patient("Kavya Rao", "9876543210")
    await flow.register_patient("Arun Rao", "9123454321")
    await flow.register_patient("Lake Patient", "9876543210", by="other_nurse")

    response = await client.get(f"{API}/patients/search?phone_number=65432", headers=seed.headers["nurse"])
    assert [p["full_name"] for p in response.json()] == ["Kavya Rao"]

    # Formatting characters are ignored
    response = await client.get(
        f"{API}/patients/search", params={"phone_number": "98-765"}, headers=seed.headers["doctor"]
    )
    assert [p["full_name"] for p in response.json()] == ["Kavya Rao"]


@pytest.mark.asyncio
async def test_list_patients_search_and_date(client, seed, flow):
    kavya = await flow.register_patient("Kavya Rao", "9876543210")
    await flow.register_patient("Arun Das", "9123454321")
    await flow.book(kavya["id"], when="2026-10-20T10:00:00")

    response = await client.get(f"{API}/patients?search=rao", headers=seed.headers["admin"])
    assert [p["full_name"] for p in response.json()] == ["Kavya Rao"]

    response = await client.get(f"{API}/patients", headers=seed.headers["admin"])
    assert [p["full_name"] for p in response.json()] == ["Arun Das", "Kavya Rao"]

    response = await client.get(f"{API}/patients?appointment_date=2026-10-20", headers=seed.headers["admin"])
    assert [p["full_name"] for p in response.json()] == ["Kavya Rao"]

    response = await client.get(f"{API}/patients?appointment_date=2026-10-21", headers=seed.headers["admin"])
    assert response.json() == []


@pytest.mark.asyncio
async def test_appointment_history_lists_completed_visits(client, seed, flow, digital_prescription):
    patient = await flow.register_patient()
    await flow.consult(digital_prescription, patient=patient)
    await flow.book(patient["id"], when="2026-10-25T09:00:00")

    response = await client.get(
        f"{API}/patients/{patient['id']}/appointment-history", headers=seed.headers["doctor"]
    )
    assert response.status_code == 200
    history = response.json()
    assert len(history) == 1
    visit = history[0]["visit"]
    assert visit["assessment"] == "Viral fever"
    assert [n["content"] for n in visit["notes"]] == ["Recheck if fever persists"]
    assert len(visit["prescription"]["line_items"]) == 2


@pytest.mark.asyncio
async def test_private_notes_hidden_from_other_staff(client, seed, flow, digital_prescription):
    patient = await flow.register_patient()
    await flow.consult(digital_prescription, patient=patient)

    response = await client.get(
        f"{API}/patients/{patient['id']}/appointment-history", headers=seed.headers["second_doctor"]
    )
    assert response.json()[0]["visit"]["notes"] == []


@pytest.mark.asyncio
async def test_patient_of_other_hospital_is_not_found(client, seed, flow):
    patient = await flow.register_patient(by="other_nurse")
    response = await client.get(
        f"{API}/patients/{patient['id']}/appointment-history", headers=seed.headers["doctor"]
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_malformed_patient_id_is_a_validation_error(client, seed):
    response = await client.get(f"{API}/patients/not-a-uuid/appointment-history", headers=seed.headers["doctor"])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_patient_report_is_a_pdf(client, seed, flow, digital_prescription):
    patient = await flow.register_patient(date_of_birth="1990-05-17")
    await flow.consult(digital_prescription, patient=patient)

    response = await client.get(f"{API}/patients/{patient['id']}/report", headers=seed.headers["nurse"])
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="Kavya_Rao-9876543210.pdf"' in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_report_without_visits_still_renders(client, seed, flow):
    patient = await flow.register_patient()
    response = await client.get(f"{API}/patients/{patient['id']}/report", headers=seed.headers["doctor"])
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_report_forbidden_for_admin(client, seed, flow):
    patient = await flow.register_patient()
    response = await client.get(f"{API}/patients/{patient['id']}/report", headers=seed.headers["admin"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_report_for_non_latin_name(client, seed, flow, digital_prescription):
    patient = await flow.register_patient("राम कुमार", "9812345678")
    await flow.consult(digital_prescription, patient=patient)

    response = await client.get(f"{API}/patients/{patient['id']}/report", headers=seed.headers["doctor"])
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")
    disposition = response.headers["content-disposition"]
    assert 'filename="9812345678.pdf"' in disposition
    assert f"filename*=UTF-8''{quote('राम_कुमार-9812345678.pdf', safe='')}" in disposition


def test_content_disposition_strips_quotes():
    header = content_disposition('Ann "Dr" O\'Neil-99999.pdf')
    assert header.startswith('attachment; filename="Ann Dr O\'Neil-99999.pdf"; filename*=UTF-8\'\'')
    assert header.isascii()
