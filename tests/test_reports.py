"""Tests for keeper report submission and manager approval."""
from datetime import date

import pytest

from database import AuditLog, FarmReport, FcrCalculation, Flock, WeightRecord
from fcr import calculate_fcr
from modules.approvals import apply_decision, get_pending_reports
from modules.keeper_report import parse_weights, submit_report


class TestParseWeights:

    @pytest.mark.parametrize("text, expected", [
        ("1.2", [1.2]),
        ("1.2, 1.35, 1.4", [1.2, 1.35, 1.4]),
        ("0.9 1.1", [0.9, 1.1]),
        (" 2,3 ", [2.0, 3.0]),
    ])
    def test_valid(self, text, expected):
        assert parse_weights(text) == expected

    @pytest.mark.parametrize("text", ["", "  ,", "abc", "1.2, -1", "0", "nan", "inf, 1.2", "1.1 -inf"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_weights(text)


class TestSubmitReport:

    def test_creates_pending_report_and_samples(self, db_session, make_flock):
        flock = make_flock()

        report = submit_report(db_session, reporter_id=5, flock_id=flock.id, feed_kg=12.5, mortality=2,
                               feed_brand="Unga Broiler Starter", temperature=31.0, weights=[1.1, 1.3],
                               report_date=date(2026, 3, 4))

        assert report.status == "PENDING"
        assert report.feed_consumed_kg == 12.5
        samples = db_session.query(WeightRecord).filter_by(flock_id=flock.id).all()
        assert sorted(s.weight_kg for s in samples) == [1.1, 1.3]
        assert all(s.sample_date == date(2026, 3, 4) for s in samples)
        assert db_session.query(AuditLog).filter_by(action="report_submitted").count() == 1
        assert report.feed_brand == "Unga Broiler Starter"
        assert report.handover_notes == ""

    def test_defaults_to_today(self, db_session, make_flock):
        flock = make_flock()
        report = submit_report(db_session, reporter_id=5, flock_id=flock.id, feed_kg=1.0, mortality=0,
                               feed_brand="Unga")
        assert report.report_date == date.today()

    @pytest.mark.parametrize("feed, mortality", [(-1.0, 0), (1.0, -2)])
    def test_rejects_negative_values(self, db_session, make_flock, feed, mortality):
        flock = make_flock()
        with pytest.raises(ValueError):
            submit_report(db_session, reporter_id=5, flock_id=flock.id, feed_kg=feed, mortality=mortality,
                          feed_brand="Unga")
        assert db_session.query(FarmReport).count() == 0

    @pytest.mark.parametrize("field, value", [
        ("feed_kg", float("nan")),
        ("feed_kg", float("inf")),
        ("temperature", float("nan")),
        ("weights", [1.2, float("inf")]),
        ("weights", [float("nan")]),
    ])
    def test_rejects_non_finite_values(self, db_session, make_flock, field, value):
        flock = make_flock()
        kwargs = {"feed_kg": 1.0, "mortality": 0, "feed_brand": "Unga"}
        kwargs[field] = value
        with pytest.raises(ValueError):
            submit_report(db_session, reporter_id=5, flock_id=flock.id, **kwargs)
        assert db_session.query(FarmReport).count() == 0
        assert db_session.query(WeightRecord).count() == 0

    @pytest.mark.parametrize("brand", ["", "   ", None])
    def test_requires_feed_brand(self, db_session, make_flock, brand):
        flock = make_flock()
        with pytest.raises(ValueError):
            submit_report(db_session, reporter_id=5, flock_id=flock.id, feed_kg=1.0, mortality=0, feed_brand=brand)
        assert db_session.query(FarmReport).count() == 0

    def test_stores_brand_and_handover_notes(self, db_session, make_flock):
        flock = make_flock()
        report = submit_report(db_session, reporter_id=5, flock_id=flock.id, feed_kg=3.0, mortality=0,
                               feed_brand="  Pembe Grower ", handover_notes=" Drinker 3 leaking \n")

        stored = db_session.query(FarmReport).filter_by(id=report.id).first()
        assert stored.feed_brand == "Pembe Grower"
        assert stored.handover_notes == "Drinker 3 leaking"

    def test_rejects_inactive_flock(self, db_session, make_flock):
        flock = make_flock(status="COMPLETED")
        with pytest.raises(ValueError):
            submit_report(db_session, reporter_id=5, flock_id=flock.id, feed_kg=1.0, mortality=0,
                          feed_brand="Unga")


class TestApplyDecision:
    """Tests for approving and rejecting reports."""

    def test_approve_syncs_mortality(self, db_session, make_flock, add_report):
        flock = make_flock(birds=100)
        report = add_report(flock, 0, mortality=3, status="PENDING")

        result = apply_decision(db_session, report.id, "approve", approver_id=77)

        assert result.status == "APPROVED"
        assert result.approved_by == 77
        refreshed = db_session.query(Flock).filter_by(id=flock.id).first()
        assert refreshed.current_count == 97
        assert refreshed.mortality_count == 3
        assert db_session.query(AuditLog).filter_by(action="report_approved").count() == 1

    def test_live_count_never_negative(self, db_session, make_flock, add_report):
        flock = make_flock(birds=2)
        report = add_report(flock, 0, mortality=5, status="PENDING")

        apply_decision(db_session, report.id, "approve", approver_id=77)

        assert db_session.query(Flock).filter_by(id=flock.id).first().current_count == 0

    def test_reject_leaves_flock_untouched(self, db_session, make_flock, add_report):
        flock = make_flock(birds=100)
        report = add_report(flock, 0, mortality=3, status="PENDING")

        result = apply_decision(db_session, report.id, "reject", approver_id=77, vet_notes="Duplicate entry")

        assert result.status == "REJECTED"
        assert result.vet_notes == "Duplicate entry"
        assert db_session.query(Flock).filter_by(id=flock.id).first().current_count == 100

    def test_already_decided_or_missing(self, db_session, make_flock, add_report):
        flock = make_flock()
        report = add_report(flock, 0, status="APPROVED")

        assert apply_decision(db_session, report.id, "reject", approver_id=77) is None
        assert apply_decision(db_session, 9999, "approve", approver_id=77) is None

    def test_unknown_decision(self, db_session, make_flock, add_report):
        flock = make_flock()
        report = add_report(flock, 0, status="PENDING")
        with pytest.raises(ValueError):
            apply_decision(db_session, report.id, "escalate", approver_id=77)

    def test_pending_queue(self, db_session, make_flock, add_report):
        flock = make_flock()
        add_report(flock, 2, status="PENDING")
        add_report(flock, 1, status="PENDING")
        add_report(flock, 0, status="APPROVED")

        pending = get_pending_reports(db_session)

        assert [r.report_date.day for r in pending] == [3, 4]

    def test_approved_report_feeds_fcr(self, db_session, make_flock):
        flock = make_flock()
        report = submit_report(db_session, reporter_id=5, flock_id=flock.id, feed_kg=2.0, mortality=0, feed_brand="Unga",
                               weights=[0.5], report_date=date(2026, 3, 2))

        assert calculate_fcr(db_session)["calculations"] == []

        apply_decision(db_session, report.id, "approve", approver_id=77)
        response = calculate_fcr(db_session, flock.id)

        assert response["calculations"][0]["fcr"] == 4.0
        assert db_session.query(FcrCalculation).count() == 1
