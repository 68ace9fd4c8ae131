"""
Care Service
Caregiver/doctor access to patients and resolution of the effective patient
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

import models
from models import CareRelationshipStatus, ProfileType
from services.auth_service import generate_share_code
from services.errors import AccessDeniedError, NotFoundError


logger = logging.getLogger(__name__)


class CareService:
    """
    Service for care relationships
    """

    def has_active_relationship(self, caregiver_id: int, patient_id: int, db: Session) -> bool:
        return db.query(models.CareRelationship).filter(
            models.CareRelationship.caregiver_id == caregiver_id,
            models.CareRelationship.patient_id == patient_id,
            models.CareRelationship.status == CareRelationshipStatus.ACTIVE,
        ).first() is not None

    def resolve_patient_id(
        self,
        user: models.User,
        requested_patient_id: Optional[int],
        db: Session
    ) -> int:
        """
        Patient whose records the request acts on.

        Patients always act on themselves. Caregivers and doctors act on the
        requested patient only through an active care relationship, and on
        themselves when nothing is requested.

        Raises:
            NotFoundError: Requested user does not exist or is not a patient
            AccessDeniedError: No access to the requested patient
        """
        if user.profile_type == ProfileType.PATIENT or requested_patient_id in (None, user.id):
            return user.id

        patient = db.query(models.User).filter(
            models.User.id == requested_patient_id,
            models.User.profile_type == ProfileType.PATIENT,
        ).first()
        if not patient:
            raise NotFoundError(f"Patient {requested_patient_id} not found")

        if self.has_active_relationship(user.id, patient.id, db):
            return patient.id

        logger.warning(f"User {user.id} denied access to patient {patient.id}")
        raise AccessDeniedError(f"No access to patient {requested_patient_id}")

    def users_with_access(self, patient_id: int, db: Session) -> List[Tuple[models.User, str, str]]:
        """(user, access_type, access_level) for the patient and active caregivers"""
        result = []
        patient = db.query(models.User).filter(models.User.id == patient_id).first()
        if patient:
            result.append((patient, "direct", "full"))

        caregivers = db.query(models.User).join(
            models.CareRelationship, models.CareRelationship.caregiver_id == models.User.id
        ).filter(
            models.CareRelationship.patient_id == patient_id,
            models.CareRelationship.status == CareRelationshipStatus.ACTIVE,
        ).all()
        for caregiver in caregivers:
            result.append((caregiver, "caregiver", "write"))
        return result

    async def get_patients(self, caregiver_id: int, db: Session) -> List[models.User]:
        return db.query(models.User).join(
            models.CareRelationship, models.CareRelationship.patient_id == models.User.id
        ).filter(
            models.CareRelationship.caregiver_id == caregiver_id,
            models.CareRelationship.status == CareRelationshipStatus.ACTIVE,
        ).order_by(models.User.name).all()

    async def use_share_code(self, caregiver: models.User, share_code: str, db: Session) -> models.User:
        """Link a caregiver to the patient owning the share code"""
        if caregiver.profile_type == ProfileType.PATIENT:
            raise AccessDeniedError("Patients cannot follow other patients")

        patient = db.query(models.User).filter(
            models.User.share_code == share_code.strip().upper(),
            models.User.profile_type == ProfileType.PATIENT,
        ).first()
        if not patient:
            raise NotFoundError("Invalid share code")

        relationship = db.query(models.CareRelationship).filter(
            models.CareRelationship.caregiver_id == caregiver.id,
            models.CareRelationship.patient_id == patient.id,
        ).first()
        if relationship:
            relationship.status = CareRelationshipStatus.ACTIVE
        else:
            db.add(models.CareRelationship(patient_id=patient.id, caregiver_id=caregiver.id))
        db.commit()

        logger.info(f"Caregiver {caregiver.id} linked to patient {patient.id}")
        return patient

    async def regenerate_share_code(self, patient: models.User, db: Session) -> str:
        if patient.profile_type != ProfileType.PATIENT:
            raise AccessDeniedError("Only patients have share codes")
        patient.share_code = generate_share_code()
        db.commit()
        return patient.share_code

    # ==================== SHARED ACCESS ====================

    async def get_shared_access(
        self,
        patient: models.User,
        db: Session
    ) -> List[Tuple[models.CareRelationship, models.User]]:
        """Active (relationship, caregiver) pairs following the patient"""
        if patient.profile_type != ProfileType.PATIENT:
            raise AccessDeniedError("Only patients share access")

        return db.query(models.CareRelationship, models.User).join(
            models.User, models.CareRelationship.caregiver_id == models.User.id
        ).filter(
            models.CareRelationship.patient_id == patient.id,
            models.CareRelationship.status == CareRelationshipStatus.ACTIVE,
        ).order_by(models.CareRelationship.created_at).all()

    async def revoke_shared_access(self, patient: models.User, relationship_id: int, db: Session) -> None:
        """
        Deactivate a caregiver link; the caregiver may follow again with the share code

        Raises:
            AccessDeniedError: Caller is not a patient
            NotFoundError: No such link to the caller
        """
        if patient.profile_type != ProfileType.PATIENT:
            raise AccessDeniedError("Only patients share access")

        relationship = db.query(models.CareRelationship).filter(
            models.CareRelationship.id == relationship_id,
            models.CareRelationship.patient_id == patient.id,
        ).first()
        if not relationship:
            raise NotFoundError(f"Shared access {relationship_id} not found")

        relationship.status = CareRelationshipStatus.INACTIVE
        db.commit()
        logger.info(f"Patient {patient.id} revoked access of user {relationship.caregiver_id}")


# Singleton instance
care_service = CareService()
