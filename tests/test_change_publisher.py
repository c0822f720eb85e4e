from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from tests.fixtures import TENANT, new_session, reset_db
from vetclinic.db.session import SessionLocal
from vetclinic.models import LedgerEntry, LedgerType
from vetclinic.services.realtime.channels import DELETE, INSERT, POSTGRES_CHANGES, SUBSCRIBED, UPDATE, ChangeSpec
from vetclinic.services.realtime.hub import LocalRealtimeHub, install_change_publisher
from vetclinic.services.realtime.query_cache import QueryCache
from vetclinic.services.realtime.router import ChangeNotificationRouter, ResourceType

HUB = LocalRealtimeHub()


class ChangePublisherTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        install_change_publisher(SessionLocal, HUB)

    def setUp(self):
        reset_db()
        self.db = new_session()
        self.events = []
        self.statuses = []
        self.channel = (
            HUB.channel("test-ledger")
            .on(POSTGRES_CHANGES, ChangeSpec(table="ledger_entries"), self.events.append)
            .subscribe(self.statuses.append)
        )

    def tearDown(self):
        HUB.remove_channel(self.channel)
        self.db.close()

    def _entry(self, tenant_id=TENANT):
        return LedgerEntry(
            tenant_id=tenant_id,
            type=LedgerType.EXPENSE,
            description="Loyer",
            amount=Decimal("3000"),
            entry_date=date(2024, 3, 10),
        )

    def test_commit_publishes_insert_update_delete(self):
        row = self._entry()
        self.db.add(row)
        self.db.commit()
        row.amount = Decimal("3200")
        self.db.commit()
        self.db.delete(row)
        self.db.commit()

        self.assertEqual([e.event_type for e in self.events], [INSERT, UPDATE, DELETE])
        self.assertEqual(self.events[0].record["tenant_id"], TENANT)
        self.assertEqual(self.events[0].record["id"], str(row.id))
        self.assertEqual(self.events[1].record["amount"], "3200")
        self.assertEqual(self.events[2].old_record["id"], str(row.id))
        self.assertEqual(self.events[2].record, {})

    def test_rollback_publishes_nothing(self):
        self.db.add(self._entry())
        self.db.flush()
        self.db.rollback()
        self.db.add(self._entry())
        self.db.commit()
        self.assertEqual([e.event_type for e in self.events], [INSERT])

    def test_install_is_idempotent(self):
        install_change_publisher(SessionLocal, HUB)
        self.db.add(self._entry())
        self.db.commit()
        self.assertEqual(len(self.events), 1)

    def test_subscribe_and_remove_report_status(self):
        self.assertEqual(self.statuses, [SUBSCRIBED])
        HUB.remove_channel(self.channel)
        self.assertEqual(self.statuses, [SUBSCRIBED, "CLOSED"])
        self.db.add(self._entry())
        self.db.commit()
        self.assertEqual(self.events, [])

    def test_router_invalidates_only_own_tenant(self):
        cache = QueryCache()
        cache.set(("ledger", "2024-03-01", "2024-03-31"), [])
        router = ChangeNotificationRouter(HUB, cache, tenant_id=TENANT)
        router.subscribe([ResourceType.LEDGER])
        try:
            self.db.add(self._entry(tenant_id="clinic-2"))
            self.db.commit()
            self.assertFalse(cache.peek(("ledger", "2024-03-01", "2024-03-31")).stale)
            self.db.add(self._entry())
            self.db.commit()
            self.assertTrue(cache.peek(("ledger", "2024-03-01", "2024-03-31")).stale)
        finally:
            router.unsubscribe()


if __name__ == "__main__":
    unittest.main()
