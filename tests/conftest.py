import json
from types import SimpleNamespace

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.constants import UserRole
from app.core.redis import redis_client
from app.core.security import create_access_token, get_password_hash
from app.db.init_db import create_tables
from app.db.models import Hospital, User
from app.db.session import get_session
from app.main import app

PASSWORD = "secret123"


class FakeNotifier:
    def __init__(self):
        self.events = []

    async def notify_user(self, user_id, event, payload):
        self.events.append(("user", str(user_id), event, payload))

    async def notify_topic(self, topic, event, payload):
        self.events.append(("topic", topic, event, payload))

    def named(self, event):
        return [e for e in self.events if e[2] == event]


class FakeSmsSender:
    def __init__(self):
        self.sent = []

    def send_later(self, to_number, body):
        self.sent.append((to_number, body))


@pytest.fixture(scope="session")
def password_hash():
    return get_password_hash(PASSWORD)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def fake_redis():
    original = redis_client.redis
    redis_client.redis = FakeAsyncRedis(decode_responses=True)
    yield redis_client.redis
    await redis_client.redis.flushall()
    redis_client.redis = original


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def sms_sender():
    return FakeSmsSender()


@pytest_asyncio.fixture
async def client(session_factory, fake_redis, notifier, sms_sender):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    original_notifier, original_sender = app.state.notifier, app.state.sms_sender
    app.state.notifier = notifier
    app.state.sms_sender = sms_sender

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.notifier, app.state.sms_sender = original_notifier, original_sender


async def issue_token(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    await redis_client.set_token(
        token, json.dumps({"user_id": str(user.id), "role": user.role}), 60
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def seed(db, fake_redis, password_hash):
    """Two hospitals with staff, plus a platform super admin. Each user gets a live token."""

    def make_user(hospital, role, name, email, **kwargs):
        user = User(
            hospital_id=hospital.id if hospital else None,
            role=role.value,
            full_name=name,
            email=email,
            password_hash=password_hash,
            **kwargs
        )
        db.add(user)
        return user

    city = Hospital(name="City Care", address="12 Main Road")
    lake = Hospital(name="Lakeside Clinic", address="4 Shore Lane")
    db.add_all([city, lake])
    await db.flush()

    data = SimpleNamespace(
        hospital=city,
        other_hospital=lake,
        super_admin=make_user(None, UserRole.SUPER_ADMIN, "Root", "root@hms.org"),
        admin=make_user(city, UserRole.ADMIN, "Asha Admin", "admin@citycare.in"),
        doctor=make_user(city, UserRole.DOCTOR, "ravi kumar", "ravi@citycare.in", speciality="General"),
        second_doctor=make_user(city, UserRole.DOCTOR, "Meena Iyer", "meena@citycare.in"),
        nurse=make_user(city, UserRole.NURSE, "Nila Nurse", "nila@citycare.in"),
        pharmacist=make_user(city, UserRole.MEDICAL_SHOP, "Paul Pharma", "paul@citycare.in"),
        other_admin=make_user(lake, UserRole.ADMIN, "Lake Admin", "admin@lakeside.in"),
        other_doctor=make_user(lake, UserRole.DOCTOR, "Lake Doctor", "doc@lakeside.in"),
        other_nurse=make_user(lake, UserRole.NURSE, "Lake Nurse", "nurse@lakeside.in"),
        other_pharmacist=make_user(lake, UserRole.MEDICAL_SHOP, "Lake Pharma", "pharma@lakeside.in"),
    )
    await db.commit()

    data.headers = {}
    for name, value in list(vars(data).items()):
        if isinstance(value, User):
            data.headers[name] = await issue_token(value)
    return data


class HospitalFlow:
    """Drives the front desk to pharmacy path through the API."""

    def __init__(self, client: AsyncClient, seed: SimpleNamespace):
        self.client = client
        self.seed = seed

    async def register_patient(self, full_name="Kavya Rao", phone_number="9876543210", by="nurse", **extra):
        response = await self.client.post(
            f"{settings.API_PREFIX}/patients",
            json={"full_name": full_name, "phone_number": phone_number, "sex": "Female", **extra},
            headers=self.seed.headers[by],
        )
        assert response.status_code == 201, response.text
        return response.json()

    async def book(self, patient_id, doctor=None, when="2026-10-19T09:30:00", by="nurse"):
        doctor = doctor or self.seed.doctor
        response = await self.client.post(
            f"{settings.API_PREFIX}/appointments",
            json={
                "patient_id": patient_id,
                "doctor_id": str(doctor.id),
                "appointment_time": when,
                "visit_purpose": "Fever",
            },
            headers=self.seed.headers[by],
        )
        assert response.status_code == 201, response.text
        return response.json()

    async def start(self, appointment_id, by="doctor"):
        return await self.client.put(
            f"{settings.API_PREFIX}/appointments/{appointment_id}/status/start",
            headers=self.seed.headers[by],
        )

    async def complete(self, appointment_id, payload, by="doctor"):
        return await self.client.put(
            f"{settings.API_PREFIX}/appointments/{appointment_id}/status/complete",
            json=payload,
            headers=self.seed.headers[by],
        )

    async def consult(self, payload, patient=None):
        """Register (or reuse) a patient, book, start and complete. Returns the saved-visit body."""
        patient = patient or await self.register_patient()
        appointment = await self.book(patient["id"])
        response = await self.start(appointment["id"])
        assert response.status_code == 200, response.text
        response = await self.complete(appointment["id"], payload)
        assert response.status_code == 200, response.text
        return response.json()

    async def dispense(self, prescription_id, payload, by="pharmacist"):
        return await self.client.put(
            f"{settings.API_PREFIX}/prescriptions/{prescription_id}/dispense",
            json=payload,
            headers=self.seed.headers[by],
        )


@pytest.fixture
def flow(client, seed):
    return HospitalFlow(client, seed)


DIGITAL_PRESCRIPTION = {
    "visit_details": {
        "subjective": "Fever for two days",
        "assessment": "Viral fever",
        "plan": "Rest and fluids",
        "private_note": "Recheck if fever persists",
    },
    "prescription_details": {
        "type": "digital",
        "line_items": [
            {"medicine_name": "Paracetamol", "dose": "500mg", "frequency": "1-0-1", "duration_days": 3},
            {"medicine_name": "ORS", "frequency": "as needed"},
        ],
    },
}


@pytest.fixture
def digital_prescription():
    return json.loads(json.dumps(DIGITAL_PRESCRIPTION))
