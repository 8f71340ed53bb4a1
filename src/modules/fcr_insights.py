"""FCR insights: weekly table per flock, manual and scheduled recalculation."""
import asyncio
import logging
from aiogram import Router, types, F
from aiogram.filters import Command, CommandObject
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from database import get_db, Flock, FcrCalculation, WeightRecord, AuditLog
from fcr import handle_fcr_request, preview_flock, rate_fcr, summarize, get_fcr_bands, set_fcr_bands
from sqlalchemy import desc
from utils import get_back_home_keyboard, get_user_role, has_permission, format_kg

logger = logging.getLogger(__name__)

router = Router()

RATING_ICONS = {
    "EXCELLENT": "🟢",
    "GOOD": "🟡",
    "FAIR": "🟠",
    "POOR": "🔴",
}

def run_fcr_job(body=None) -> dict:
    """Open a session, run the aggregator and close it. Safe to call from a worker thread."""
    db = next(get_db())
    try:
        return handle_fcr_request(db, body)
    finally:
        db.close()

async def run_scheduled_fcr(job=run_fcr_job) -> bool:
    """One scheduled recalculation. Errors are logged and never raised."""
    try:
        response = await asyncio.to_thread(job, None)
    except Exception:
        logger.exception("Scheduled FCR run crashed")
        return False

    if not response.get("success"):
        logger.warning("Scheduled FCR run failed")
        return False
    logger.info("Scheduled FCR run: %d week row(s)", len(response.get("calculations") or []))
    return True

async def periodic_fcr(interval_hours: float):
    """Recalculate FCR for all active flocks every `interval_hours`."""
    while True:
        await asyncio.sleep(interval_hours * 3600)
        await run_scheduled_fcr()

def format_fcr_response(response: dict) -> str:
    if not response.get("success"):
        return f"❌ **{response.get('error', 'FCR calculation failed')}**"

    calculations = response.get("calculations") or []
    if not calculations:
        note = response.get("message") or "No approved reports to calculate."
        return f"ℹ️ {note}"

    text = f"✅ **FCR Updated** ({len(calculations)} week rows)\n————————————————\n"
    for c in calculations[-10:]:
        text += f"`Flock {c['flock_id']} W{c['week']:<2} FCR {c['fcr']:.2f}`\n"
    return text

def build_insights_text(db, flock_id: int) -> str:
    flock = db.query(Flock).filter_by(id=flock_id).first()
    if not flock:
        return "⚠️ Flock not found."

    rows = db.query(FcrCalculation).filter_by(flock_id=flock_id).order_by(FcrCalculation.week_number).all()
    weeks = [(r.week_number, r.total_feed_kg, r.avg_weight_kg, r.fcr) for r in rows]
    source = ""
    if not rows:
        rows = preview_flock(db, flock_id)
        weeks = [(r.week, r.feed, r.weight, r.fcr) for r in rows]
        source = "_Preview from unsaved reports (includes pending)._\n"

    text = f"📈 **FCR Insights — {flock.name}**\n————————————————\n"
    if not weeks:
        text += "_No FCR data yet. Submit keeper reports with feed and weight data, then approve them._\n"
        return text

    bands = get_fcr_bands(db)
    stats = summarize(rows)
    for label, key in (("Avg", "avg"), ("Best", "best"), ("Latest", "latest")):
        value = stats[key]
        text += f"{RATING_ICONS[rate_fcr(value, bands)]} **{label} FCR:** {value:.2f}\n"

    latest_sample = db.query(WeightRecord).filter_by(flock_id=flock_id).order_by(
        desc(WeightRecord.sample_date), desc(WeightRecord.created_at)
    ).first()
    latest_weight = latest_sample.weight_kg if latest_sample and latest_sample.weight_kg else weeks[-1][2]
    text += f"⚖️ **Latest Weight:** {format_kg(latest_weight)}\n\n"

    text += source
    text += "`Wk  Feed(kg)  Wt(kg)  FCR`\n"
    for week, feed, weight, value in weeks:
        text += f"`{week:<3} {feed:>8.1f} {weight:>7.2f} {value:>5.2f}` {RATING_ICONS[rate_fcr(value, bands)]}\n"
    return text

@router.message(Command("fcr"))
async def cmd_fcr(message: types.Message, command: CommandObject):
    role = get_user_role(message.from_user.id)
    if not has_permission(role, "recalculate"):
        await message.answer("⛔ Access Denied.")
        return

    await message.answer("⏳ Calculating FCR...")
    response = await asyncio.to_thread(run_fcr_job, {"flock_id": command.args})
    await message.answer(format_fcr_response(response), parse_mode="Markdown")

@router.callback_query(F.data == "menu_fcr")
async def menu_fcr(callback: types.CallbackQuery):
    if not has_permission(get_user_role(callback.from_user.id), "fcr_insights"):
        await callback.answer("⛔ Access Denied.", show_alert=True)
        return

    db = next(get_db())
    flocks = db.query(Flock).filter_by(status="ACTIVE").order_by(Flock.id).all()
    db.close()

    if not flocks:
        await callback.answer("No active flocks.", show_alert=True)
        return

    keyboard = [[InlineKeyboardButton(text=f"🐥 {f.name}", callback_data=f"fcr_flock_{f.id}")] for f in flocks]
    keyboard.append([InlineKeyboardButton(text="⬅️ Back", callback_data='main_menu')])

    await callback.message.edit_text(
        text="📈 **FCR Insights**\n\nSelect a flock:",
        parse_mode="Markdown",
        reply_markup=InlineKeyboardMarkup(inline_keyboard=keyboard)
    )
    await callback.answer()

def _insights_keyboard(flock_id: int, role: str):
    keyboard = []
    if has_permission(role, "recalculate"):
        keyboard.append([InlineKeyboardButton(text="🔄 Recalculate", callback_data=f"fcr_recalc_{flock_id}")])
    keyboard.extend(get_back_home_keyboard('menu_fcr').inline_keyboard)
    return InlineKeyboardMarkup(inline_keyboard=keyboard)

@router.callback_query(F.data.startswith("fcr_flock_"))
async def show_flock_insights(callback: types.CallbackQuery):
    flock_id = int(callback.data.split("_")[2])
    role = get_user_role(callback.from_user.id)
    if not has_permission(role, "fcr_insights"):
        await callback.answer("⛔ Access Denied.", show_alert=True)
        return

    db = next(get_db())
    text = build_insights_text(db, flock_id)
    db.close()

    await callback.message.edit_text(
        text=text,
        parse_mode="Markdown",
        reply_markup=_insights_keyboard(flock_id, role)
    )
    await callback.answer()

@router.callback_query(F.data.startswith("fcr_recalc_"))
async def recalculate_flock(callback: types.CallbackQuery):
    flock_id = int(callback.data.split("_")[2])
    role = get_user_role(callback.from_user.id)
    if not has_permission(role, "recalculate"):
        await callback.answer("⛔ Access Denied.", show_alert=True)
        return

    response = await asyncio.to_thread(run_fcr_job, {"flock_id": flock_id})
    if not response.get("success"):
        await callback.answer("❌ FCR calculation failed", show_alert=True)
        return

    db = next(get_db())
    text = build_insights_text(db, flock_id)
    db.close()

    await callback.message.edit_text(
        text=text,
        parse_mode="Markdown",
        reply_markup=_insights_keyboard(flock_id, role)
    )
    await callback.answer("✅ Recalculated")

def format_bands(bands) -> str:
    text = "📏 **FCR Rating Bands**\n"
    for upper, label in bands:
        text += f"{RATING_ICONS[label]} {label}: below {upper:.2f}\n"
    text += f"{RATING_ICONS['POOR']} POOR: everything else\n"
    return text

@router.message(Command("fcrbands"))
async def cmd_fcr_bands(message: types.Message, command: CommandObject):
    """/fcrbands shows the bands; /fcrbands 1.8 2.2 2.5 changes them (admin only)."""
    role = get_user_role(message.from_user.id)
    if not has_permission(role, "fcr_insights"):
        await message.answer("⛔ Access Denied.")
        return

    db = next(get_db())
    try:
        if not command.args:
            await message.answer(format_bands(get_fcr_bands(db)), parse_mode="Markdown")
            return

        if not has_permission(role, "settings"):
            await message.answer("⛔ Only admins can change the bands.")
            return

        try:
            excellent, good, fair = (float(v) for v in command.args.split())
            bands = set_fcr_bands(db, excellent, good, fair)
        except ValueError:
            await message.answer("⚠️ Usage: `/fcrbands <excellent> <good> <fair>`, increasing, e.g. `/fcrbands 1.8 2.2 2.5`",
                                 parse_mode="Markdown")
            return

        db.add(AuditLog(user_id=message.from_user.id, action="update_setting",
                        details=f"FCR bands set to {excellent}/{good}/{fair}"))
        db.commit()
        await message.answer("✅ **Bands Updated!**\n\n" + format_bands(bands), parse_mode="Markdown")
    finally:
        db.close()
