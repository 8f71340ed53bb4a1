"""Weekly feed-conversion-ratio (FCR) aggregation over approved farm reports."""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from sqlalchemy.exc import SQLAlchemyError
import math
from database import Flock, FarmReport, WeightRecord, FcrCalculation, SystemSettings

logger = logging.getLogger(__name__)

# Fallback growth curve used when a flock has no weight samples yet
FALLBACK_BASE_WEIGHT = 0.04  # kg
FALLBACK_WEEKLY_GAIN = 0.25  # kg per week

# Rating bands (upper bounds, exclusive)
FCR_BANDS = [
    (1.8, "EXCELLENT"),
    (2.2, "GOOD"),
    (2.5, "FAIR"),
]

# Settings keys that override the band bounds
BAND_SETTINGS = {
    "EXCELLENT": "fcr_excellent_below",
    "GOOD": "fcr_good_below",
    "FAIR": "fcr_fair_below",
}


@dataclass
class WeekResult:
    flock_id: int
    week: int
    feed: float          # cumulative kg, rounded to 2dp
    weight: float        # effective average kg per bird, rounded to 3dp
    fcr: float
    mortality: int = 0

    def as_dict(self) -> dict:
        return {
            "flock_id": self.flock_id,
            "week": self.week,
            "fcr": self.fcr,
            "feed": self.feed,
            "weight": self.weight,
            "mortality": self.mortality,
        }


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def week_number(epoch: date, day) -> int:
    """1-based week of `day` counted from `epoch` (floor of elapsed days / 7, plus 1)."""
    return (_as_date(day) - _as_date(epoch)).days // 7 + 1


def fallback_weight(week: int) -> float:
    return FALLBACK_BASE_WEIGHT + FALLBACK_WEEKLY_GAIN * week


def compute_weeks(flock_id: int, reports, weights) -> list[WeekResult]:
    """
    Turn a flock's reports and weight samples into one WeekResult per report week.

    `reports` need `report_date`, `feed_consumed_kg` and `mortality_count`;
    `weights` need `weight_kg`, `sample_date` and `created_at`. Missing
    numbers count as zero. Returns an empty list when there are no reports.
    """
    if not reports:
        return []

    epoch = min(_as_date(r.report_date) for r in reports)

    weekly_feed: dict[int, float] = {}
    weekly_mortality: dict[int, int] = {}
    for r in reports:
        week = week_number(epoch, r.report_date)
        weekly_feed[week] = weekly_feed.get(week, 0.0) + (r.feed_consumed_kg or 0)
        weekly_mortality[week] = weekly_mortality.get(week, 0) + (r.mortality_count or 0)

    weekly_weights: dict[int, list[float]] = {}
    for w in weights or []:
        sampled_on = w.sample_date or w.created_at
        if sampled_on is None:
            continue
        week = week_number(epoch, sampled_on)
        if week < 1:
            continue  # sampled before the first report
        weekly_weights.setdefault(week, []).append(w.weight_kg or 0)

    results = []
    cumulative_feed = 0.0
    last_avg = None  # average of the latest week (so far) that had samples

    for week in range(1, max(weekly_feed) + 1):
        samples = weekly_weights.get(week)
        if samples:
            last_avg = sum(samples) / len(samples)

        if week not in weekly_feed:
            continue

        cumulative_feed += weekly_feed[week]
        effective = last_avg if last_avg and last_avg > 0 else fallback_weight(week)

        results.append(WeekResult(
            flock_id=flock_id,
            week=week,
            feed=round(cumulative_feed, 2),
            weight=round(effective, 3),
            fcr=round(cumulative_feed / effective, 2),
            mortality=weekly_mortality[week],
        ))

    return results


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise ValueError(f"Unsupported database dialect for FCR upsert: {dialect_name}")
    return insert


def upsert_result(db, result: WeekResult) -> bool:
    """Insert or overwrite the (flock, week) row atomically. Returns False on a database error."""
    insert = _insert_for(db.get_bind().dialect.name)
    values = {
        "flock_id": result.flock_id,
        "week_number": result.week,
        "avg_weight_kg": result.weight,
        "total_feed_kg": result.feed,
        "fcr": result.fcr,
        "calculated_at": datetime.now(),
    }
    stmt = insert(FcrCalculation).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["flock_id", "week_number"],
        set_={k: stmt.excluded[k] for k in ("avg_weight_kg", "total_feed_kg", "fcr", "calculated_at")},
    )

    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError:
        logger.exception("FCR upsert failed for flock %s week %s", result.flock_id, result.week)
        db.rollback()
        return False
    return True


def load_flock_inputs(db, flock_id: int, statuses=("APPROVED",)):
    reports = db.query(FarmReport).filter(
        FarmReport.flock_id == flock_id,
        FarmReport.status.in_(statuses)
    ).order_by(FarmReport.report_date).all()

    weights = db.query(WeightRecord).filter(
        WeightRecord.flock_id == flock_id
    ).order_by(WeightRecord.sample_date).all()

    return reports, weights


def calculate_fcr(db, flock_id: int | None = None) -> dict:
    """Recompute and persist weekly FCR for every active flock, or just `flock_id`."""
    query = db.query(Flock).filter(Flock.status == "ACTIVE")
    if flock_id is not None:
        query = query.filter(Flock.id == flock_id)
    flocks = query.order_by(Flock.id).all()

    if not flocks:
        return {"success": True, "message": "No active flocks", "calculations": []}

    calculations = []
    for flock in flocks:
        reports, weights = load_flock_inputs(db, flock.id)
        if not reports:
            logger.debug("Flock %s has no approved reports, skipping", flock.id)
            continue

        for result in compute_weeks(flock.id, reports, weights):
            if upsert_result(db, result):
                calculations.append(result.as_dict())

    logger.info("FCR calculated: %d flock(s), %d week row(s)", len(flocks), len(calculations))
    return {"success": True, "calculations": calculations}


def parse_flock_selector(value) -> int | None:
    """None/blank selects all active flocks; anything else must be an integer flock id."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid flock id: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    return int(text)


def handle_fcr_request(db, body=None) -> dict:
    """Entry point for every trigger. Never raises; failures come back as success=False."""
    try:
        flock_id = parse_flock_selector((body or {}).get("flock_id"))
        return calculate_fcr(db, flock_id)
    except Exception:
        logger.exception("FCR calculation error")
        db.rollback()
        return {"success": False, "error": "FCR calculation failed"}


def preview_flock(db, flock_id: int) -> list[WeekResult]:
    """Compute (without saving) from approved and pending reports."""
    reports, weights = load_flock_inputs(db, flock_id, statuses=("APPROVED", "PENDING"))
    return compute_weeks(flock_id, reports, weights)


def get_fcr_bands(db) -> list[tuple[float, str]]:
    """Rating bands with any overrides from the settings table applied."""
    rows = db.query(SystemSettings).filter(SystemSettings.key.in_(BAND_SETTINGS.values())).all()
    stored = {row.key: row.value for row in rows}

    bands = []
    for upper, label in FCR_BANDS:
        raw = stored.get(BAND_SETTINGS[label])
        if raw is not None:
            try:
                value = float(raw)
            except ValueError:
                value = math.nan
            if math.isfinite(value) and value > 0:
                upper = value
            else:
                logger.warning("Ignoring invalid %s setting: %r", BAND_SETTINGS[label], raw)
        bands.append((upper, label))

    if any(a[0] >= b[0] for a, b in zip(bands, bands[1:])):
        logger.warning("FCR band settings are not increasing, using defaults")
        return list(FCR_BANDS)
    return bands


def set_fcr_bands(db, excellent: float, good: float, fair: float) -> list[tuple[float, str]]:
    """Store new band bounds. Raises ValueError unless 0 < excellent < good < fair."""
    values = [excellent, good, fair]
    if not all(math.isfinite(v) and v > 0 for v in values) or not excellent < good < fair:
        raise ValueError("Bands must be positive and increasing")

    for (_, label), value in zip(FCR_BANDS, values):
        key = BAND_SETTINGS[label]
        setting = db.query(SystemSettings).filter_by(key=key).first()
        if not setting:
            setting = SystemSettings(key=key, value=str(value))
            db.add(setting)
        else:
            setting.value = str(value)
    db.commit()
    return get_fcr_bands(db)


def rate_fcr(value: float, bands=None) -> str:
    for upper, label in bands or FCR_BANDS:
        if value < upper:
            return label
    return "POOR"


def summarize(rows) -> dict:
    """Average, best (lowest) and latest FCR for rows ordered by week."""
    values = [r.fcr for r in rows]
    if not values:
        return {"avg": 0.0, "best": 0.0, "latest": 0.0}
    return {
        "avg": round(sum(values) / len(values), 2),
        "best": min(values),
        "latest": values[-1],
    }
