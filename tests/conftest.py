import pytest
from datetime import date, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
import sys
import os

# Add src to path so we can import database models
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from database import Base, Flock, FarmReport, WeightRecord

START = date(2026, 3, 2)

@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.rollback()
    session.close()

@pytest.fixture
def make_flock(db_session):
    def _make(name="Batch 1", status="ACTIVE", birds=500):
        flock = Flock(name=name, start_date=START, total_birds=birds, current_count=birds, status=status)
        db_session.add(flock)
        db_session.commit()
        return flock
    return _make

@pytest.fixture
def add_report(db_session):
    """Add a report `day` days after START."""
    def _add(flock, day, feed=1.0, mortality=0, status="APPROVED"):
        report = FarmReport(
            flock_id=flock.id,
            reporter_id=42,
            report_date=START + timedelta(days=day),
            feed_consumed_kg=feed,
            mortality_count=mortality,
            status=status
        )
        db_session.add(report)
        db_session.commit()
        return report
    return _add

@pytest.fixture
def add_weight(db_session):
    def _add(flock, day, weight):
        record = WeightRecord(flock_id=flock.id, sample_date=START + timedelta(days=day), weight_kg=weight)
        db_session.add(record)
        db_session.commit()
        return record
    return _add
