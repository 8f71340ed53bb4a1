"""Tests for database models and constraints."""
from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from database import Flock, FarmReport, WeightRecord, FcrCalculation, SystemSettings, User


class TestFlock:

    def test_default_values(self, db_session):
        flock = Flock(name="Batch 1", start_date=date(2026, 3, 2))
        db_session.add(flock)
        db_session.commit()

        assert flock.status == "ACTIVE"
        assert flock.total_birds == 0
        assert flock.current_count == 0
        assert flock.mortality_count == 0
        assert flock.created_at is not None


class TestFarmReport:

    def test_new_report_is_pending(self, db_session, make_flock):
        flock = make_flock()
        report = FarmReport(flock_id=flock.id, reporter_id=7, report_date=date(2026, 3, 3))
        db_session.add(report)
        db_session.commit()

        assert report.status == "PENDING"
        assert report.feed_consumed_kg == 0.0
        assert report.mortality_count == 0
        assert report.approved_by is None
        assert report.flock.name == flock.name

    def test_flock_reports_relationship(self, db_session, make_flock, add_report):
        flock = make_flock()
        add_report(flock, 0)
        add_report(flock, 1)

        assert len(flock.reports) == 2


class TestWeightRecord:

    def test_sample_date_optional(self, db_session, make_flock):
        flock = make_flock()
        record = WeightRecord(flock_id=flock.id, weight_kg=1.1)
        db_session.add(record)
        db_session.commit()

        assert record.sample_date is None
        assert record.created_at is not None


class TestFcrCalculation:

    def test_flock_week_is_unique(self, db_session, make_flock):
        flock = make_flock()
        db_session.add(FcrCalculation(flock_id=flock.id, week_number=1, avg_weight_kg=0.5, total_feed_kg=2.0, fcr=4.0))
        db_session.commit()

        db_session.add(FcrCalculation(flock_id=flock.id, week_number=1, avg_weight_kg=0.6, total_feed_kg=2.0, fcr=3.33))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_same_week_for_different_flocks(self, db_session, make_flock):
        a = make_flock(name="A")
        b = make_flock(name="B")
        for flock in (a, b):
            db_session.add(FcrCalculation(flock_id=flock.id, week_number=1, avg_weight_kg=0.5, total_feed_kg=2.0, fcr=4.0))
        db_session.commit()

        assert db_session.query(FcrCalculation).count() == 2


class TestUser:

    def test_user_defaults(self, db_session):
        user = User(telegram_id=1001, name="Amina")
        db_session.add(user)
        db_session.commit()

        assert user.role == "INVESTOR"
        assert user.is_active is True


class TestSystemSettings:

    def test_key_is_unique(self, db_session):
        db_session.add(SystemSettings(key="fcr_good_below", value="2.2"))
        db_session.commit()

        db_session.add(SystemSettings(key="fcr_good_below", value="2.0"))
        with pytest.raises(IntegrityError):
            db_session.commit()
