"""
Health Records Service
Vital signs, appointments, exams and prescriptions of a patient
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy.orm import Session

import models
from database import Base
from services.errors import InvalidTransitionError, NotFoundError
from services.notification_service import notification_service
from tools.dose_status import to_display_time, to_naive_utc


logger = logging.getLogger(__name__)


VITAL_SIGN_MODELS: Dict[str, Type[Base]] = {
    "blood-pressure": models.BloodPressureReading,
    "glucose": models.GlucoseReading,
    "heart-rate": models.HeartRateReading,
    "temperature": models.TemperatureReading,
    "weight": models.WeightReading,
}

RECORD_MODELS: Dict[str, Type[Base]] = {
    "appointments": models.Appointment,
    "tests": models.MedicalTest,
    "prescriptions": models.Prescription,
    "exam_requests": models.ExamRequest,
}

# Column each record kind is listed by, newest first
_ORDER_COLUMNS = {
    models.Appointment: "appointment_date",
    models.MedicalTest: "test_date",
    models.Prescription: "prescription_date",
    models.ExamRequest: "created_at",
}


def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: to_naive_utc(value) if isinstance(value, datetime) else value for key, value in data.items()}


class HealthRecordsService:
    """
    Service for the patient's non-medication records
    """

    async def get_vital_signs(self, kind: str, patient_id: int, db: Session, limit: int = 100) -> List[Base]:
        model = VITAL_SIGN_MODELS[kind]
        return db.query(model).filter(
            model.patient_id == patient_id
        ).order_by(model.measured_at.desc()).limit(limit).all()

    async def add_vital_sign(self, kind: str, patient_id: int, data: Dict[str, Any], db: Session) -> Base:
        model = VITAL_SIGN_MODELS[kind]
        values = {key: value for key, value in _clean(data).items() if value is not None}
        reading = model(patient_id=patient_id, **values)
        db.add(reading)
        db.commit()
        db.refresh(reading)
        logger.info(f"Recorded {kind} reading {reading.id} for patient {patient_id}")
        return reading

    async def get_records(self, kind: str, patient_id: int, db: Session, limit: int = 100) -> List[Base]:
        model = RECORD_MODELS[kind]
        order_column = getattr(model, _ORDER_COLUMNS[model])
        return db.query(model).filter(
            model.patient_id == patient_id
        ).order_by(order_column.desc()).limit(limit).all()

    async def add_record(self, kind: str, patient_id: int, data: Dict[str, Any], db: Session) -> Base:
        model = RECORD_MODELS[kind]
        values = _clean(data)

        self._check_exam_request(values.get("exam_request_id"), patient_id, db)
        record = model(patient_id=patient_id, **values)
        db.add(record)
        db.commit()
        db.refresh(record)
        logger.info(f"Added {kind} record {record.id} for patient {patient_id}")
        return record

    # ==================== UPDATE / DELETE ====================

    def _get(self, model: Type[Base], record_id: int, patient_id: int, db: Session) -> Base:
        record = db.query(model).filter(model.id == record_id, model.patient_id == patient_id).first()
        if not record:
            raise NotFoundError(f"{model.__name__} {record_id} not found")
        return record

    def _apply(self, record: Base, data: Dict[str, Any]) -> None:
        """Set the given fields; None is only applied to nullable columns"""
        columns = record.__table__.columns
        for field, value in _clean(data).items():
            if field not in columns or field in ("id", "patient_id"):
                continue
            if value is None and not columns[field].nullable:
                continue
            setattr(record, field, value)

    def _check_exam_request(self, exam_request_id: Optional[int], patient_id: int, db: Session) -> None:
        if exam_request_id is None:
            return
        exists = db.query(models.ExamRequest.id).filter(
            models.ExamRequest.id == exam_request_id,
            models.ExamRequest.patient_id == patient_id,
        ).first()
        if not exists:
            raise ValueError(f"Exam request {exam_request_id} not found")

    async def update_vital_sign(self, kind: str, reading_id: int, patient_id: int, data: Dict[str, Any], db: Session) -> Base:
        reading = self._get(VITAL_SIGN_MODELS[kind], reading_id, patient_id, db)
        self._apply(reading, data)
        db.commit()
        db.refresh(reading)
        logger.info(f"Updated {kind} reading {reading.id} of patient {patient_id}")
        return reading

    async def delete_vital_sign(self, kind: str, reading_id: int, patient_id: int, db: Session) -> None:
        reading = self._get(VITAL_SIGN_MODELS[kind], reading_id, patient_id, db)
        db.delete(reading)
        db.commit()
        logger.info(f"Deleted {kind} reading {reading_id} of patient {patient_id}")

    async def update_record(self, kind: str, record_id: int, patient_id: int, data: Dict[str, Any], db: Session) -> Base:
        record = self._get(RECORD_MODELS[kind], record_id, patient_id, db)
        if "exam_request_id" in data:
            self._check_exam_request(data["exam_request_id"], patient_id, db)
        self._apply(record, data)
        db.commit()
        db.refresh(record)
        logger.info(f"Updated {kind} record {record.id} of patient {patient_id}")
        return record

    async def delete_record(self, kind: str, record_id: int, patient_id: int, db: Session) -> None:
        """Delete a record; tests fulfilling a deleted exam request are kept, unlinked"""
        record = self._get(RECORD_MODELS[kind], record_id, patient_id, db)
        if kind == "exam_requests":
            db.query(models.MedicalTest).filter(
                models.MedicalTest.exam_request_id == record.id
            ).update({models.MedicalTest.exam_request_id: None}, synchronize_session=False)
        db.delete(record)
        db.commit()
        logger.info(f"Deleted {kind} record {record_id} of patient {patient_id}")

    async def schedule_exam_request(
        self,
        db: Session,
        actor: models.User,
        request_id: int,
        patient_id: int,
        test_date: datetime,
        location: Optional[str] = None,
    ) -> Tuple[models.MedicalTest, models.ExamRequest]:
        """
        Book the exam of a pending request: creates the scheduled test and
        marks the request scheduled

        Raises:
            NotFoundError: No such request for the patient
            InvalidTransitionError: Request is not pending
        """
        exam_request = self._get(models.ExamRequest, request_id, patient_id, db)
        if exam_request.status != "pending":
            raise InvalidTransitionError(f"Exam request {request_id} is already {exam_request.status}")

        test = models.MedicalTest(
            patient_id=patient_id,
            exam_request_id=exam_request.id,
            name=exam_request.specific_exams or exam_request.exam_category or "Exame",
            type=exam_request.exam_category,
            location=location,
            test_date=to_naive_utc(test_date),
            preparation_notes=exam_request.clinical_indication,
            status="scheduled",
        )
        db.add(test)
        exam_request.status = "scheduled"
        db.commit()
        db.refresh(test)
        db.refresh(exam_request)
        logger.info(f"Exam request {request_id} scheduled as test {test.id}")

        patient = db.query(models.User).filter(models.User.id == patient_id).first()
        when = to_display_time(test.test_date).strftime("%d/%m/%Y às %H:%M")
        message = f"{test.name} agendado para {when}"
        if test.location:
            message += f" em {test.location}"
        await notification_service.create_notification(
            db,
            actor=actor,
            patient=patient,
            notification_type="exam_scheduled",
            title="Exame Agendado",
            message=message,
            related_id=test.id,
            related_type="test",
            related_item_name=test.name,
            original_scheduled_time=test.test_date,
        )
        return test, exam_request


# Singleton instance
health_records_service = HealthRecordsService()
