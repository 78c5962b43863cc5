"""
Role based permission classes and facility scope checks.
"""
from rest_framework.permissions import BasePermission

MANAGER_ROLES = {"doctor", "hospital_admin", "center_admin", "super"}


class IsPatientRole(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == "patient")


class IsScheduleManager(BasePermission):
    """Doctors, facility administrators and super admins."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in MANAGER_ROLES)


def own_doctor_id(user):
    profile = getattr(user, "doctor_profile", None)
    return profile.id if profile is not None else None


def can_manage_facility(user, facility) -> bool:
    """``facility`` is a ``FacilityRef``; kind NONE is never a staff facility."""
    role = getattr(user, "role", None)
    if role == "super":
        return True
    if role == "hospital_admin":
        return facility.hospital_id is not None and facility.hospital_id == user.hospital_id
    if role == "center_admin":
        return facility.diagnostic_center_id is not None and facility.diagnostic_center_id == user.diagnostic_center_id
    return False


def can_manage_schedule(user, subject, facility) -> bool:
    """Policies and overrides: the facility's admins, or the doctor for an independent practice."""
    if can_manage_facility(user, facility):
        return True
    if getattr(user, "role", None) == "doctor" and subject.is_doctor and facility.id is None:
        return own_doctor_id(user) == subject.id
    return False


def can_manage_booking(user, booking) -> bool:
    role = getattr(user, "role", None)
    if role == "super":
        return True
    if role == "hospital_admin":
        return booking.hospital_id is not None and booking.hospital_id == user.hospital_id
    if role == "center_admin":
        return booking.diagnostic_center_id is not None and booking.diagnostic_center_id == user.diagnostic_center_id
    if role == "doctor":
        return booking.doctor_id is not None and booking.doctor_id == own_doctor_id(user)
    return False
