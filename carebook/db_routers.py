"""
Primary/replica routing.

Reads go to the ``replica`` alias when one is configured; every write and
every explicit ``using('default')`` stays on the primary.  The booking
allocator always pins its reads to the primary, so replica lag can only
make availability listings look stale, never cause a double booking.
"""
from __future__ import annotations

from django.conf import settings


class ReadReplicaRouter:
    replica_alias = "replica"

    def _has_replica(self) -> bool:
        return self.replica_alias in settings.DATABASES

    def db_for_read(self, model, **hints):
        if hints.get("instance") is not None:
            # Follow the instance we were loaded from.
            return hints["instance"]._state.db
        return self.replica_alias if self._has_replica() else "default"

    def db_for_write(self, model, **hints):
        return "default"

    def allow_relation(self, obj1, obj2, **hints):
        # Both aliases serve the same data set.
        return True

    def allow_migrate(self, db, app_label, model_name=None, **hints):
        return db == "default"
