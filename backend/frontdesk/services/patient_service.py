"""
Patient management service.
"""

import logging
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from bson import ObjectId

from ..database import Database, PATIENTS, object_id_or_none, storage_errors
from ..errors import ConflictError, NotFoundError
from ..models.patient import Patient, PatientCreate, PatientUpdate, PatientSummary

logger = logging.getLogger(__name__)

MRN_TAKEN = "Medical record number is already in use"


def _storage_errors(action: str):
    return storage_errors(action, conflict=MRN_TAKEN, failure="Patient operation failed")


def _to_summary(doc: dict) -> PatientSummary:
    return PatientSummary(
        id=str(doc["_id"]),
        name=doc["name"],
        contact_info=doc.get("contact_info"),
        medical_record_number=doc.get("medical_record_number")
    )


def _search_filter(term: str) -> dict:
    pattern = {"$regex": re.escape(term), "$options": "i"}
    return {
        "$or": [
            {"name": pattern},
            {"contact_info": pattern},
            {"medical_record_number": pattern}
        ]
    }


def _patient_oid(patient_id: str) -> ObjectId:
    oid = object_id_or_none(patient_id)
    if oid is None:
        raise NotFoundError(f"Patient with ID {patient_id} not found")
    return oid


class PatientService:
    """Patient records, and the lookups the walk-in queue needs."""

    @classmethod
    async def _ensure_mrn_free(cls, mrn: Optional[str], patient_id: Optional[str] = None):
        if not mrn:
            return
        patients = Database.get_collection(PATIENTS)
        with _storage_errors("checking record number"):
            existing = await patients.find_one({"medical_record_number": mrn})
        if existing and str(existing["_id"]) != patient_id:
            raise ConflictError(f"Medical record number {mrn} is already in use")

    @classmethod
    async def create_patient(cls, patient_data: PatientCreate) -> Patient:
        """Create a new patient record."""
        patients = Database.get_collection(PATIENTS)
        await cls._ensure_mrn_free(patient_data.medical_record_number)

        patient_doc = {
            **patient_data.model_dump(),
            "created_at": datetime.utcnow(),
            "updated_at": None
        }

        with _storage_errors("registering patient"):
            result = await patients.insert_one(patient_doc)
        patient_doc["_id"] = str(result.inserted_id)
        logger.info("Registered patient %s", patient_doc["_id"])

        return Patient(**patient_doc)

    @classmethod
    async def get_patient(cls, patient_id: str) -> Patient:
        oid = _patient_oid(patient_id)
        patients = Database.get_collection(PATIENTS)
        with _storage_errors("loading patient"):
            patient = await patients.find_one({"_id": oid})
        if not patient:
            raise NotFoundError(f"Patient with ID {patient_id} not found")

        patient["_id"] = str(patient["_id"])
        return Patient(**patient)

    @classmethod
    async def update_patient(cls, patient_id: str, updates: PatientUpdate) -> Patient:
        """Apply the fields that were sent; an empty update just reads the record."""
        oid = _patient_oid(patient_id)
        update_data = updates.model_dump(exclude_none=True)
        if not update_data:
            return await cls.get_patient(patient_id)

        await cls._ensure_mrn_free(update_data.get("medical_record_number"), patient_id)
        update_data["updated_at"] = datetime.utcnow()

        patients = Database.get_collection(PATIENTS)
        with _storage_errors("updating patient"):
            result = await patients.update_one({"_id": oid}, {"$set": update_data})
        if result.matched_count == 0:
            raise NotFoundError(f"Patient with ID {patient_id} not found")

        return await cls.get_patient(patient_id)

    @classmethod
    async def delete_patient(cls, patient_id: str) -> None:
        oid = _patient_oid(patient_id)
        patients = Database.get_collection(PATIENTS)
        with _storage_errors("deleting patient"):
            result = await patients.delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise NotFoundError(f"Patient with ID {patient_id} not found")
        logger.info("Deleted patient %s", patient_id)

    @classmethod
    async def search_patients(cls, query: Optional[str] = None, limit: int = 50) -> List[Patient]:
        """Search patients by name, contact or medical record number."""
        patients = Database.get_collection(PATIENTS)
        filter_query = _search_filter(query.strip()) if query and query.strip() else {}

        with _storage_errors("searching patients"):
            docs = await patients.find(filter_query).sort("name", 1).limit(limit).to_list(length=limit)

        return [Patient(**{**doc, "_id": str(doc["_id"])}) for doc in docs]

    # Lookups used by the queue service

    @classmethod
    async def exists(cls, patient_id: str) -> bool:
        oid = object_id_or_none(patient_id)
        if oid is None:
            return False
        patients = Database.get_collection(PATIENTS)
        with _storage_errors("checking patient"):
            return await patients.count_documents({"_id": oid}, limit=1) > 0

    @classmethod
    async def get_summaries(cls, patient_ids: Iterable[str]) -> Dict[str, PatientSummary]:
        """Summaries keyed by id; unknown ids are left out."""
        oids = [oid for oid in map(object_id_or_none, set(patient_ids)) if oid is not None]
        if not oids:
            return {}

        patients = Database.get_collection(PATIENTS)
        with _storage_errors("loading patient summaries"):
            docs = await patients.find({"_id": {"$in": oids}}).to_list(length=len(oids))
        return {str(doc["_id"]): _to_summary(doc) for doc in docs}

    @classmethod
    async def find_matching_ids(cls, term: str, limit: Optional[int] = None) -> List[str]:
        """Ids of patients whose name, contact or record number contains ``term``."""
        patients = Database.get_collection(PATIENTS)
        cursor = patients.find(_search_filter(term), {"_id": 1})
        if limit:
            cursor = cursor.limit(limit)
        with _storage_errors("searching patients"):
            docs = await cursor.to_list(length=limit)
        return [str(doc["_id"]) for doc in docs]
