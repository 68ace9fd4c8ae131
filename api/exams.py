"""
Exams API Router
Exam requests from doctors and the tests that fulfil them
"""

from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.deps import get_db, get_current_user, get_patient_id, services, service_error_to_http
from api.schemas.health_records import (
    ExamCreate,
    ExamRequestCreate,
    ExamRequestResponse,
    ExamRequestUpdate,
    ExamResponse,
    ExamSchedule,
    ExamScheduleResponse,
    ExamUpdate,
)
from services.errors import ServiceError
import models


router = APIRouter(tags=["exams"])


# ==================== TESTS ====================

@router.get("/tests", response_model=List[ExamResponse])
async def get_tests(
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()
    return await health_records_service.get_records("tests", patient_id, db)


@router.post("/tests", response_model=ExamResponse, status_code=status.HTTP_201_CREATED)
async def create_test(
    data: ExamCreate,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()

    try:
        return await health_records_service.add_record("tests", patient_id, data.model_dump(), db)
    except ValueError as e:
        raise service_error_to_http(e)


@router.put("/tests/{test_id}", response_model=ExamResponse)
async def update_test(
    test_id: int,
    data: ExamUpdate,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """Edit a test, e.g. attach results; an unknown exam_request_id is 400"""
    health_records_service = services.get_health_records_service()

    try:
        return await health_records_service.update_record(
            "tests", test_id, patient_id, data.model_dump(exclude_unset=True), db
        )
    except (ServiceError, ValueError) as e:
        raise service_error_to_http(e)


@router.delete("/tests/{test_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_test(
    test_id: int,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()

    try:
        await health_records_service.delete_record("tests", test_id, patient_id, db)
    except ServiceError as e:
        raise service_error_to_http(e)


# ==================== EXAM REQUESTS ====================

@router.get("/exam-requests", response_model=List[ExamRequestResponse])
async def get_exam_requests(
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()
    return await health_records_service.get_records("exam_requests", patient_id, db)


@router.post("/exam-requests", response_model=ExamRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_exam_request(
    data: ExamRequestCreate,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()
    return await health_records_service.add_record("exam_requests", patient_id, data.model_dump(), db)


@router.put("/exam-requests/{request_id}", response_model=ExamRequestResponse)
async def update_exam_request(
    request_id: int,
    data: ExamRequestUpdate,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    health_records_service = services.get_health_records_service()

    try:
        return await health_records_service.update_record(
            "exam_requests", request_id, patient_id, data.model_dump(exclude_unset=True), db
        )
    except ServiceError as e:
        raise service_error_to_http(e)


@router.delete("/exam-requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam_request(
    request_id: int,
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """Delete a request; tests already booked from it are kept"""
    health_records_service = services.get_health_records_service()

    try:
        await health_records_service.delete_record("exam_requests", request_id, patient_id, db)
    except ServiceError as e:
        raise service_error_to_http(e)


@router.post("/exam-requests/{request_id}/schedule", response_model=ExamScheduleResponse)
async def schedule_exam_request(
    request_id: int,
    data: ExamSchedule,
    user: models.User = Depends(get_current_user),
    patient_id: int = Depends(get_patient_id),
    db: Session = Depends(get_db)
):
    """
    Book the exam of a pending request

    Creates a scheduled test linked to the request, marks the request
    scheduled and notifies everyone following the patient. A request that
    is no longer pending is 409.
    """
    health_records_service = services.get_health_records_service()

    try:
        test, exam_request = await health_records_service.schedule_exam_request(
            db,
            actor=user,
            request_id=request_id,
            patient_id=patient_id,
            test_date=data.test_date,
            location=data.location,
        )
    except ServiceError as e:
        raise service_error_to_http(e)

    return ExamScheduleResponse(
        test=ExamResponse.model_validate(test),
        exam_request=ExamRequestResponse.model_validate(exam_request),
    )
