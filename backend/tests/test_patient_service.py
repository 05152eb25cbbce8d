"""Tests for the patient service lookups, driven through a mocked collection."""
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import AutoReconnect, DuplicateKeyError

from frontdesk.database import Database
from frontdesk.errors import ConflictError, NotFoundError, StorageFailure
from frontdesk.main import app
from frontdesk.models.patient import PatientCreate, PatientUpdate
from frontdesk.services.patient_service import PatientService

PATIENT_ID = ObjectId("64b7f0c2a1b2c3d4e5f60719")


def patient_doc(**overrides):
    doc = {
        "_id": PATIENT_ID,
        "name": "Grace Hopper",
        "contact_info": "grace@example.org",
        "medical_record_number": "MRN-1",
        "created_at": datetime(2026, 3, 1, 8, 0),
        "updated_at": None
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def cursor():
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=[patient_doc()])
    return cursor


@pytest.fixture
def collection(monkeypatch, cursor):
    collection = MagicMock()
    collection.find.return_value = cursor
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=PATIENT_ID))
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1))
    collection.count_documents = AsyncMock(return_value=1)
    monkeypatch.setattr(Database, "get_collection", classmethod(lambda cls, name: collection))
    return collection


async def test_create_patient(collection):
    patient = await PatientService.create_patient(
        PatientCreate(name="Grace Hopper", contact_info="grace@example.org", medical_record_number="MRN-1")
    )

    assert patient.id == str(PATIENT_ID)
    assert patient.medical_record_number == "MRN-1"
    collection.find_one.assert_awaited_once_with({"medical_record_number": "MRN-1"})


async def test_create_with_taken_record_number(collection):
    collection.find_one.return_value = patient_doc(_id=ObjectId())

    with pytest.raises(ConflictError):
        await PatientService.create_patient(PatientCreate(name="Other", medical_record_number="MRN-1"))
    collection.insert_one.assert_not_called()


async def test_create_race_on_record_number(collection):
    collection.insert_one.side_effect = DuplicateKeyError("E11000")

    with pytest.raises(ConflictError):
        await PatientService.create_patient(PatientCreate(name="Other", medical_record_number="MRN-1"))


async def test_update_keeping_own_record_number(collection):
    collection.find_one.side_effect = [patient_doc(), patient_doc(name="Grace B. Hopper")]

    patient = await PatientService.update_patient(
        str(PATIENT_ID),
        PatientUpdate(name="Grace B. Hopper", medical_record_number="MRN-1")
    )

    assert patient.name == "Grace B. Hopper"


async def test_get_patient_with_malformed_id(collection):
    with pytest.raises(NotFoundError):
        await PatientService.get_patient("nope")
    collection.find_one.assert_not_called()


async def test_exists(collection):
    assert await PatientService.exists(str(PATIENT_ID)) is True
    collection.count_documents.return_value = 0
    assert await PatientService.exists(str(PATIENT_ID)) is False
    assert await PatientService.exists("nope") is False


async def test_get_summaries(collection):
    summaries = await PatientService.get_summaries([str(PATIENT_ID), str(PATIENT_ID), "nope"])

    query = collection.find.call_args.args[0]
    assert query == {"_id": {"$in": [PATIENT_ID]}}
    assert summaries[str(PATIENT_ID)].name == "Grace Hopper"


async def test_get_summaries_of_nothing_skips_the_database(collection):
    assert await PatientService.get_summaries([]) == {}
    collection.find.assert_not_called()


async def test_find_matching_ids_escapes_the_term(collection, cursor):
    ids = await PatientService.find_matching_ids("a.b (c)")

    query, projection = collection.find.call_args.args
    assert projection == {"_id": 1}
    patterns = [clause[field]["$regex"] for clause in query["$or"] for field in clause]
    assert patterns == [r"a\.b\ \(c\)"] * 3
    assert all(clause[field]["$options"] == "i" for clause in query["$or"] for field in clause)
    cursor.limit.assert_not_called()
    assert ids == [str(PATIENT_ID)]


async def test_delete_missing_patient(collection):
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=0))
    with pytest.raises(NotFoundError):
        await PatientService.delete_patient(str(PATIENT_ID))


async def test_driver_errors_become_storage_failure(collection):
    collection.count_documents.side_effect = AutoReconnect("connection reset")

    with pytest.raises(StorageFailure) as excinfo:
        await PatientService.exists(str(PATIENT_ID))

    assert "connection reset" not in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, AutoReconnect)


@pytest.fixture
def client(collection):
    return TestClient(app)


def test_read_patient_returns_plain_id(client, collection):
    collection.find_one.return_value = patient_doc()

    response = client.get(f"/patients/{PATIENT_ID}")

    assert response.status_code == 200
    assert response.json()["id"] == str(PATIENT_ID)
    assert "_id" not in response.json()


def test_missing_patient_is_404(client):
    response = client.get(f"/patients/{PATIENT_ID}")
    assert response.status_code == 404
    assert response.json() == {"detail": f"Patient with ID {PATIENT_ID} not found"}


def test_register_with_taken_record_number_is_409(client, collection):
    collection.find_one.return_value = patient_doc(_id=ObjectId())

    response = client.post("/patients/", json={"name": "Other", "medical_record_number": "MRN-1"})
    assert response.status_code == 409


def test_patient_storage_failure_is_500(client, collection):
    collection.find_one.side_effect = AutoReconnect("connection reset")

    response = client.get(f"/patients/{PATIENT_ID}")
    assert response.status_code == 500
    assert response.json() == {"detail": "Patient operation failed"}
