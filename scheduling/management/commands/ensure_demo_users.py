# scheduling/management/commands/ensure_demo_users.py
from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from django.db import transaction

from scheduling.models import DiagnosticCenter, Doctor, Hospital, User

DEMO_SET = [
    ("patient1", "patient"),
    ("doctor1", "doctor"),
    ("hospadmin1", "hospital_admin"),
    ("centeradmin1", "center_admin"),
    ("super", "super"),
]


class Command(BaseCommand):
    help = "Ensure one demo user per role exists with a known password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="Demo@12345")

    @transaction.atomic
    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        hospital, _ = Hospital.objects.get_or_create(name="Demo Hospital", defaults={"status": "approved"})
        center, _ = DiagnosticCenter.objects.get_or_create(name="Demo Diagnostic Center", defaults={"status": "approved"})
        for username, role in DEMO_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": password, "is_active": True},
            )
            if not created:
                u.password = password
                u.role = role
                u.is_active = True
            u.hospital = hospital if role == "hospital_admin" else None
            u.diagnostic_center = center if role == "center_admin" else None
            u.save()
            if role == "doctor":
                Doctor.objects.get_or_create(
                    user=u, defaults={"name": "Demo Doctor", "status": "approved", "hospital": hospital},
                )
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All demo users ensured."))
