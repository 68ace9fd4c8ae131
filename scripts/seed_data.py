#!/usr/bin/env python
"""
Seed Data
Script to seed the database with a demo patient, caregiver and two weeks of doses
"""

import sys
import os
import argparse
import logging
import random
from datetime import datetime, timedelta
from typing import List

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import SessionLocal, init_db
from models import (
    User, CareRelationship, Medication, MedicationSchedule, MedicationLog,
    BloodPressureReading, GlucoseReading, ProfileType, MedicationLogStatus,
    GlobalNotification, UserNotification, NotificationAuditLog, MedicationHistory
)
from services.auth_service import generate_share_code, get_password_hash
from tools.dose_status import derive_dose_status, local_to_utc, local_today, Overdue


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo123"


def seed_users(db):
    """Create the demo patient and a caregiver linked to them"""
    existing = db.query(User).filter(User.email == "paciente@medtracker.dev").first()
    if existing:
        logger.info("Demo patient already exists")
        caregiver = db.query(User).filter(User.email == "cuidador@medtracker.dev").first()
        return existing, caregiver

    patient = User(
        email="paciente@medtracker.dev",
        password=get_password_hash(DEMO_PASSWORD),
        name="Maria Souza",
        age=68,
        weight=72.5,
        gender="feminino",
        whatsapp="+5511999990000",
        profile_type=ProfileType.PATIENT,
        share_code=generate_share_code(),
    )
    caregiver = User(
        email="cuidador@medtracker.dev",
        password=get_password_hash(DEMO_PASSWORD),
        name="Pedro Souza",
        profile_type=ProfileType.CAREGIVER,
    )
    db.add_all([patient, caregiver])
    db.flush()

    db.add(CareRelationship(patient_id=patient.id, caregiver_id=caregiver.id))
    db.flush()

    logger.info(f"Created patient {patient.name} (ID: {patient.id}) and caregiver {caregiver.name} (ID: {caregiver.id})")
    return patient, caregiver


def seed_medications(db, patient_id: int) -> List[Medication]:
    """Add medications with their daily dose times"""
    medications_data = [
        {"name": "Losartana", "dosage": "50mg", "frequency": "2x ao dia", "times": ["08:00", "20:00"]},
        {"name": "Metformina", "dosage": "850mg", "frequency": "3x ao dia", "times": ["07:30", "12:30", "19:30"]},
        {"name": "Sinvastatina", "dosage": "20mg", "frequency": "1x ao dia", "times": ["22:00"]},
    ]

    medications = []
    start = local_today() - timedelta(days=30)
    for med_data in medications_data:
        medication = Medication(
            patient_id=patient_id,
            name=med_data["name"],
            dosage=med_data["dosage"],
            frequency=med_data["frequency"],
            start_date=start,
            is_active=True,
        )
        medication.schedules = [MedicationSchedule(scheduled_time=t) for t in med_data["times"]]
        db.add(medication)
        db.flush()
        medications.append(medication)
        logger.info(f"  Added: {medication.name} ({medication.dosage}) at {', '.join(med_data['times'])}")

    return medications


def seed_dose_history(db, patient_id: int, medications: List[Medication], days: int = 14):
    """Past doses, mostly taken with some delay; today's doses left open"""
    random.seed(42)  # For reproducibility
    now = datetime.utcnow()
    today = local_today(now)
    created = 0

    for day_offset in range(days, -1, -1):
        day = today - timedelta(days=day_offset)
        for medication in medications:
            for schedule in medication.schedules:
                scheduled_at = local_to_utc(day, schedule.scheduled_time)
                if scheduled_at > now or day_offset == 0:
                    state = derive_dose_status(scheduled_at, None, now)
                    log = MedicationLog(
                        medication_id=medication.id,
                        schedule_id=schedule.id,
                        patient_id=patient_id,
                        scheduled_date_time=scheduled_at,
                        status=MedicationLogStatus(state.status.value),
                        delay_minutes=state.late_minutes if isinstance(state, Overdue) else 0,
                    )
                elif random.random() < 0.85:
                    delay = random.randint(-10, 45)
                    log = MedicationLog(
                        medication_id=medication.id,
                        schedule_id=schedule.id,
                        patient_id=patient_id,
                        scheduled_date_time=scheduled_at,
                        actual_date_time=scheduled_at + timedelta(minutes=delay),
                        status=MedicationLogStatus.TAKEN,
                        delay_minutes=delay,
                        delay_reason="Esqueci" if delay > 15 else None,
                        confirmed_by=patient_id,
                    )
                else:
                    log = MedicationLog(
                        medication_id=medication.id,
                        schedule_id=schedule.id,
                        patient_id=patient_id,
                        scheduled_date_time=scheduled_at,
                        status=MedicationLogStatus.OVERDUE,
                        delay_minutes=int((now - scheduled_at).total_seconds() // 60),
                    )
                db.add(log)
                created += 1

    db.flush()
    logger.info(f"Created {created} dose logs over {days + 1} days")


def seed_vital_signs(db, patient_id: int, days: int = 7):
    now = datetime.utcnow()
    for day_offset in range(days):
        measured_at = now - timedelta(days=day_offset, hours=2)
        db.add(BloodPressureReading(
            patient_id=patient_id,
            systolic=random.randint(118, 145),
            diastolic=random.randint(75, 92),
            heart_rate=random.randint(62, 84),
            measured_at=measured_at,
        ))
        db.add(GlucoseReading(
            patient_id=patient_id,
            glucose_level=round(random.uniform(88, 140), 1),
            measurement_type="fasting",
            measured_at=measured_at,
        ))
    db.flush()
    logger.info(f"Created {days * 2} vital sign readings")


def clear_data(db):
    logger.info("Clearing existing data...")
    for model in (
        NotificationAuditLog, UserNotification, GlobalNotification, MedicationHistory,
        MedicationLog, MedicationSchedule, Medication, BloodPressureReading,
        GlucoseReading, CareRelationship, User,
    ):
        db.query(model).delete()
    db.commit()
    logger.info("Existing data cleared")


def seed_all(clear_existing: bool = False):
    """Run all seed operations"""

    print("\n" + "="*60)
    print("Database Seeding")
    print("="*60)

    init_db()
    db = SessionLocal()

    try:
        if clear_existing:
            clear_data(db)

        patient, caregiver = seed_users(db)
        db.commit()

        if not db.query(Medication).filter(Medication.patient_id == patient.id).count():
            medications = seed_medications(db, patient.id)
            db.commit()

            seed_dose_history(db, patient.id, medications)
            db.commit()

            seed_vital_signs(db, patient.id)
            db.commit()

        # Print summary
        print("\n" + "="*60)
        print("Seeding Complete!")
        print("="*60)
        print(f"\nDatabase Statistics:")
        print(f"  Users: {db.query(User).count()}")
        print(f"  Medications: {db.query(Medication).count()}")
        print(f"  Dose logs: {db.query(MedicationLog).count()}")

        print(f"\nPatient login: {patient.email} / {DEMO_PASSWORD} (share code {patient.share_code})")
        if caregiver:
            print(f"Caregiver login: {caregiver.email} / {DEMO_PASSWORD}")

    except Exception as e:
        db.rollback()
        logger.error(f"Error during seeding: {e}")
        raise
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(
        description="Seed the database with demo data"
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Clear existing data before seeding"
    )

    args = parser.parse_args()

    seed_all(clear_existing=args.clear)


if __name__ == "__main__":
    main()
