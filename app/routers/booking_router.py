from typing import List, Optional
from datetime import datetime
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from ..application.services.booking_service import BookingService, BookingRequest, BookingResult
from ..dependencies import CurrentUser, get_booking_service, get_current_user, get_optional_user, require_patient
from ..exceptions import ValidationError
from ..schemas.common.common import ErrorResponse
from ..schemas.booking.booking import (
    BookingBase,
    BookingResponse,
    BusySlotResponse,
    PrivateBookingRequest,
    PublicBookingRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/booking",
    tags=["Booking"],
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


def _to_request(body: BookingBase, patient_id: Optional[int] = None) -> BookingRequest:
    return BookingRequest(
        full_name=body.fullName,
        phone=body.phone,
        email=body.email,
        work_date=body.date,
        doctor_id=body.doctorId,
        appoint_hour=body.appointHour,
        gender=body.gender,
        date_of_birth=body.dateOfBirth,
        symptom=body.symptom,
        department=body.department,
        schedule_id=body.scheduleId,
        patient_id=patient_id,
    )


def _to_response(result: BookingResult) -> BookingResponse:
    return BookingResponse(
        appointmentId=result.appointment_id,
        appointmentCode=result.appointment_code,
        patientId=result.patient_id,
        scheduleId=result.schedule_id,
        doctorName=result.doctor_name,
        date=result.date,
        appointHour=result.appoint_hour,
    )


@router.post("/public", response_model=BookingResponse)
def public_book(
    body: PublicBookingRequest,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    booking_service: BookingService = Depends(get_booking_service),
):
    try:
        user_id = current_user.id if current_user else None
        result = booking_service.book(_to_request(body), current_user_id=user_id)
        return _to_response(result)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error booking appointment: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to book appointment")


@router.post("/private", response_model=BookingResponse)
def private_book(
    body: PrivateBookingRequest,
    current_user: CurrentUser = Depends(require_patient),
    booking_service: BookingService = Depends(get_booking_service),
):
    try:
        result = booking_service.book(_to_request(body, patient_id=body.patientId), current_user_id=current_user.id)
        return _to_response(result)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error booking appointment for user {current_user.id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to book appointment")


@router.get("/info_slot_busy", response_model=List[BusySlotResponse])
def get_busy_slots(
    doctor_id: int = Query(..., alias="doctorId"),
    date: str = Query(...),
    booking_service: BookingService = Depends(get_booking_service),
):
    if doctor_id <= 0:
        raise ValidationError("doctorId must be greater than 0")
    try:
        work_date = datetime.strptime(date, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("date must use the YYYY-MM-DD format")

    try:
        slots = booking_service.list_busy_slots(doctor_id, work_date)
        return [
            BusySlotResponse(name=s.name, phone=s.phone, appointHour=s.appoint_hour, status=s.status)
            for s in slots
        ]
    except Exception as e:
        logger.error(f"Error retrieving busy slots for doctor {doctor_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve busy slots")


@router.delete("/cancel/{booking_id}", status_code=204)
def cancel_booking(
    booking_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
):
    try:
        booking_service.cancel(booking_id)
        logger.info(f"Appointment {booking_id} cancelled by user {current_user.id}")
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error cancelling appointment {booking_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to cancel appointment")
