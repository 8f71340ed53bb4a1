from sqlalchemy import create_engine, Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from datetime import datetime
from dotenv import load_dotenv
import os

load_dotenv()

# Database path (any SQLAlchemy URL; sqlite and postgresql are supported)
DB_PATH = os.getenv("DB_PATH", "sqlite:///flockfund.db")

Base = declarative_base()

class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    telegram_id = Column(Integer, unique=True, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="INVESTOR") # ADMIN, ACCOUNTANT, MANAGER, KEEPER, INVESTOR
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)

class Flock(Base):
    __tablename__ = 'flocks'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False) # e.g. "Batch 7 - Mar 2026"
    start_date = Column(Date, nullable=False)
    total_birds = Column(Integer, default=0)
    current_count = Column(Integer, default=0)
    mortality_count = Column(Integer, default=0)
    status = Column(String, default="ACTIVE") # ACTIVE, COMPLETED, CANCELLED
    created_at = Column(DateTime, default=datetime.now)

    reports = relationship("FarmReport", back_populates="flock")

class FarmReport(Base):
    """
    A keeper's daily report. Only APPROVED reports count towards FCR.
    """
    __tablename__ = 'farm_reports'

    id = Column(Integer, primary_key=True)
    flock_id = Column(Integer, ForeignKey('flocks.id'), nullable=False)
    reporter_id = Column(Integer, nullable=False) # Telegram user ID
    report_date = Column(Date, nullable=False)

    feed_consumed_kg = Column(Float, default=0.0)
    feed_brand = Column(String, default="")
    mortality_count = Column(Integer, default=0)
    temperature_celsius = Column(Float, nullable=True)
    clinical_signs = Column(String, default="")
    handover_notes = Column(String, default="")

    status = Column(String, nullable=False, default="PENDING") # PENDING, APPROVED, REJECTED
    approved_by = Column(Integer, nullable=True)
    vet_notes = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    flock = relationship("Flock", back_populates="reports")

class WeightRecord(Base):
    __tablename__ = 'weight_records'

    id = Column(Integer, primary_key=True)
    flock_id = Column(Integer, ForeignKey('flocks.id'), nullable=False)
    sample_date = Column(Date, nullable=True) # Falls back to created_at
    bird_identifier = Column(String, default="")
    weight_kg = Column(Float, default=0.0)
    created_at = Column(DateTime, default=datetime.now)

class FcrCalculation(Base):
    __tablename__ = 'fcr_calculations'
    __table_args__ = (
        UniqueConstraint('flock_id', 'week_number', name='uq_fcr_flock_week'),
    )

    id = Column(Integer, primary_key=True)
    flock_id = Column(Integer, ForeignKey('flocks.id'), nullable=False)
    week_number = Column(Integer, nullable=False)
    avg_weight_kg = Column(Float, nullable=False)
    total_feed_kg = Column(Float, nullable=False) # Cumulative up to this week
    fcr = Column(Float, nullable=False)
    calculated_at = Column(DateTime, default=datetime.now)

class SystemSettings(Base):
    __tablename__ = 'settings'

    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, nullable=False)
    value = Column(String, nullable=False) # Store everything as string, cast on use

class AuditLog(Base):
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=datetime.now, nullable=False)
    user_id = Column(Integer, nullable=False)  # Telegram user ID
    action = Column(String, nullable=False)  # e.g., "report_submitted", "report_approved", "new_flock"
    details = Column(String, default="")


# Engine Instance
def _make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)

engine = _make_engine(DB_PATH)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def configure(db_path: str):
    """Point the engine and SessionLocal at another database URL."""
    global DB_PATH, engine
    if db_path == DB_PATH:
        return engine
    engine.dispose()
    DB_PATH = db_path
    engine = _make_engine(db_path)
    SessionLocal.configure(bind=engine)
    return engine

def init_db():
    # Mainly for manual init, Alembic handles migration usually
    Base.metadata.create_all(engine)
    return SessionLocal()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
