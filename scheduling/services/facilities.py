"""
Subject and facility context resolution.

A schedulable *subject* is a doctor or a diagnostic test.  A *facility* is
at most one of hospital / diagnostic center; a doctor with neither runs an
independent practice.  Both are carried as small immutable values so that
policy lookups and booking keys never have to guess from nullable columns.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..exceptions import InvalidInput, NotFound, Unavailable
from ..models import DiagnosticCenter, DiagnosticTest, Doctor, Hospital


class FacilityKind(str, Enum):
    NONE = 'none'
    HOSPITAL = 'hospital'
    DIAGNOSTIC_CENTER = 'diagnostic_center'


@dataclass(frozen=True)
class FacilityRef:
    kind: FacilityKind
    id: Optional[int] = None

    @classmethod
    def from_ids(cls, hospital_id: Optional[int] = None, diagnostic_center_id: Optional[int] = None) -> 'FacilityRef':
        if hospital_id and diagnostic_center_id:
            raise InvalidInput('Specify either a hospital or a diagnostic center, not both.')
        if hospital_id:
            return cls(FacilityKind.HOSPITAL, int(hospital_id))
        if diagnostic_center_id:
            return cls(FacilityKind.DIAGNOSTIC_CENTER, int(diagnostic_center_id))
        return NO_FACILITY

    @property
    def key(self) -> str:
        if self.kind is FacilityKind.NONE:
            return 'none'
        return f'{self.kind.value}:{self.id}'

    @property
    def hospital_id(self) -> Optional[int]:
        return self.id if self.kind is FacilityKind.HOSPITAL else None

    @property
    def diagnostic_center_id(self) -> Optional[int]:
        return self.id if self.kind is FacilityKind.DIAGNOSTIC_CENTER else None

    def lookup(self) -> dict:
        """Exact-match filter kwargs for models with hospital/center FKs."""
        return {
            'hospital_id': self.hospital_id,
            'diagnostic_center_id': self.diagnostic_center_id,
        }


NO_FACILITY = FacilityRef(FacilityKind.NONE)


@dataclass(frozen=True)
class Subject:
    kind: str  # 'doctor' | 'test'
    id: int

    DOCTOR = 'doctor'
    TEST = 'test'

    @property
    def key(self) -> str:
        return f'{self.kind}:{self.id}'

    @property
    def is_doctor(self) -> bool:
        return self.kind == self.DOCTOR

    def lookup(self) -> dict:
        if self.is_doctor:
            return {'doctor_id': self.id, 'test_id': None}
        return {'doctor_id': None, 'test_id': self.id}


def _facility_model(facility: FacilityRef):
    if facility.kind is FacilityKind.HOSPITAL:
        return Hospital
    return DiagnosticCenter


def ensure_facility_approved(facility: FacilityRef, using: Optional[str] = None) -> None:
    """Raise ``NotFound`` for a missing facility and ``Unavailable`` for an unapproved one."""
    if facility.kind is FacilityKind.NONE:
        return
    model = _facility_model(facility)
    obj = model.objects.using(using).filter(pk=facility.id).only('id', 'status').first()
    if obj is None:
        raise NotFound(f'{facility.kind.value.replace("_", " ").capitalize()} not found.')
    if not obj.is_approved:
        raise Unavailable('Facility is not approved for bookings.')


def doctor_context(doctor_id: int, using: Optional[str] = None) -> tuple[Doctor, FacilityRef]:
    """Load an approved doctor and the facility their serials belong to."""
    doctor = (
        Doctor.objects.using(using)
        .select_related('hospital', 'diagnostic_center')
        .filter(pk=doctor_id)
        .first()
    )
    if doctor is None or not doctor.is_approved:
        raise NotFound('Doctor not found.')
    if doctor.hospital_id:
        facility = FacilityRef(FacilityKind.HOSPITAL, doctor.hospital_id)
        if not doctor.hospital.is_approved:
            raise Unavailable('Facility is not approved for bookings.')
    elif doctor.diagnostic_center_id:
        facility = FacilityRef(FacilityKind.DIAGNOSTIC_CENTER, doctor.diagnostic_center_id)
        if not doctor.diagnostic_center.is_approved:
            raise Unavailable('Facility is not approved for bookings.')
    else:
        facility = NO_FACILITY
    return doctor, facility


def diagnostic_test_context(
    test_id: int,
    facility: FacilityRef,
    using: Optional[str] = None,
) -> DiagnosticTest:
    """Load an active test and check it is offered by ``facility``."""
    if facility.kind is FacilityKind.NONE:
        raise InvalidInput('Either a hospital or a diagnostic center is required for test serials.')
    test = DiagnosticTest.objects.using(using).filter(pk=test_id).first()
    if test is None or not test.is_active:
        raise NotFound('Test not found.')
    if (test.hospital_id, test.diagnostic_center_id) != (facility.hospital_id, facility.diagnostic_center_id):
        raise InvalidInput('Test does not belong to this facility.')
    ensure_facility_approved(facility, using=using)
    return test
