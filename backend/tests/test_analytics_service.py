"""
Analytics tests.

The replay and ranking helpers are checked on in-memory rows; the bundle
is checked end to end against a small warehouse.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

from palletrack.services import analytics_service, ledger_service


def _log(changed_at, previous_qty, new_qty, product_id=1, changed_by_id=1):
    return SimpleNamespace(
        changed_at=changed_at,
        previous_qty=previous_qty,
        new_qty=new_qty,
        product_id=product_id,
        changed_by_id=changed_by_id,
    )


TODAY = datetime(2026, 3, 10, 15, 0, 0)


# =============================================================================
# PURE HELPERS
# =============================================================================


class TestNetDelta:

    def test_first_observation_counts_from_zero(self):
        assert analytics_service.net_delta(_log(TODAY, None, 6)) == 6

    def test_decrease(self):
        assert analytics_service.net_delta(_log(TODAY, 6, 1)) == -5


class TestReplayStockHistory:

    def test_walks_back_from_current_total(self):
        logs = [
            _log(datetime(2026, 3, 9, 10, 0), None, 6),
            _log(datetime(2026, 3, 10, 9, 0), 2, 6),
        ]
        history = analytics_service.replay_stock_history(10, logs, TODAY, 2)
        assert history == [
            {"date": "2026-03-08", "total_stock": 0},
            {"date": "2026-03-09", "total_stock": 6},
            {"date": "2026-03-10", "total_stock": 10},
        ]

    def test_no_logs_is_flat(self):
        history = analytics_service.replay_stock_history(42, [], TODAY, 30)
        assert len(history) == 31
        assert {h["total_stock"] for h in history} == {42}
        assert history[-1]["date"] == "2026-03-10"


class TestActivityByDay:

    def test_buckets_added_and_removed(self):
        logs = [
            _log(datetime(2026, 3, 1, 8, 0), None, 100),   # outside the window
            _log(datetime(2026, 3, 9, 10, 0), None, 6),
            _log(datetime(2026, 3, 10, 9, 0), 2, 6),
            _log(datetime(2026, 3, 10, 11, 0), 6, 1),
        ]
        days = analytics_service.activity_by_day(logs, TODAY, days=3)
        assert [d["date"] for d in days] == ["2026-03-08", "2026-03-09", "2026-03-10"]
        assert days[0] == {"date": "2026-03-08", "changes": 0, "total_added": 0, "total_removed": 0}
        assert days[1]["total_added"] == 6
        assert days[2] == {"date": "2026-03-10", "changes": 2, "total_added": 4, "total_removed": 5}


class TestTopMovers:

    def test_ranked_by_total_movement(self):
        products = [
            SimpleNamespace(id=1, name="Feuermaxx 3kg", code="FM3", color="#ef4444"),
            SimpleNamespace(id=2, name="Landi 2kg", code="L2", color="#22c55e"),
            SimpleNamespace(id=3, name="Jumbo 5kg", code="J5", color="#8b5cf6"),
        ]
        logs = [
            _log(TODAY, None, 4, product_id=2),
            _log(TODAY, None, 6, product_id=1),
            _log(TODAY, 6, 1, product_id=1),
        ]
        movers = analytics_service.rank_top_movers(logs, products)
        assert [m["id"] for m in movers] == [1, 2]
        assert movers[0]["added"] == 6
        assert movers[0]["removed"] == 5
        assert movers[0]["total_movement"] == 11
        assert movers[0]["changes"] == 2

        assert len(analytics_service.rank_top_movers(logs, products, limit=1)) == 1


# =============================================================================
# BUNDLE
# =============================================================================


class TestBuildAnalytics:

    def test_bundle(self, db_session, warehouse, user):
        a1, a2, p1 = warehouse["a1"], warehouse["a2"], warehouse["p1"]
        yesterday = TODAY - timedelta(days=1)
        ledger_service.apply_entries(
            [
                {"location_id": a1.id, "product_id": p1.id, "quantity": 80},
                {"location_id": a2.id, "product_id": p1.id, "quantity": 25},
            ],
            user.id,
            now=yesterday,
        )

        data = analytics_service.build_analytics(now=TODAY)

        assert data["generated_at"] == "2026-03-10T15:00:00Z"
        summary = data["summary"]
        assert summary["total_items"] == 105
        assert summary["unique_locations_with_stock"] == 2
        assert summary["unique_products_in_stock"] == 1
        assert summary["total_locations"] == 3   # A1, A2 and the childless root B
        assert summary["total_products"] == 2
        assert summary["changes_this_week"] == 2

        assert data["product_totals"][0]["name"] == "Feuermaxx 3kg"
        assert data["product_totals"][0]["total_quantity"] == 105
        assert data["product_totals"][0]["location_count"] == 2

        utilization = [(row["name"], row["utilization_percent"]) for row in data["location_utilization"]]
        assert utilization == [("A1", 80), ("A2", 50), ("B", None)]
        assert data["location_utilization"][0]["parent_name"] == "A"

        history = data["stock_history"]
        assert len(history) == 31
        assert history[-1]["total_stock"] == 105
        assert history[-2]["total_stock"] == 105
        assert history[-3]["total_stock"] == 0

        assert data["top_movers"][0]["total_movement"] == 105
        assert data["staff_activity"] == [
            {"user_id": user.id, "user_name": "Lagerist", "changes": 2, "last_activity": "2026-03-09T15:00:00Z"}
        ]
        assert data["category_data"] == [{"category": "finished", "quantity": 105, "product_count": 2}]
        assert data["data_freshness"]["oldest_check_at"] == "2026-03-09T15:00:00Z"

    def test_empty_database(self, db_session):
        data = analytics_service.build_analytics(now=TODAY)
        assert data["summary"]["total_items"] == 0
        assert data["top_movers"] == []
        assert data["data_freshness"] == {"oldest_check_at": None, "newest_check_at": None}
