import asyncio
import logging
from aiogram import Router, types, F
from aiogram.filters import Command
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from database import get_db, FarmReport, Flock, AuditLog
from modules.fcr_insights import run_fcr_job
from utils import get_back_home_keyboard, get_user_role, has_permission

logger = logging.getLogger(__name__)

router = Router()

DECISIONS = {"approve": "APPROVED", "reject": "REJECTED"}

def get_pending_reports(db, limit: int = 10):
    return db.query(FarmReport).filter_by(status="PENDING").order_by(
        FarmReport.report_date, FarmReport.id
    ).limit(limit).all()

def apply_decision(db, report_id: int, decision: str, approver_id: int, vet_notes: str | None = None):
    """
    Approve or reject a pending report.

    Approved mortality is taken off the flock's live count (never below zero)
    and added to its running mortality total. Returns the report, or None when
    it does not exist or was already decided.
    """
    status = DECISIONS.get(decision)
    if status is None:
        raise ValueError(f"Unknown decision: {decision}")

    report = db.query(FarmReport).filter_by(id=report_id).first()
    if not report or report.status != "PENDING":
        return None

    report.status = status
    report.approved_by = approver_id
    report.vet_notes = vet_notes

    if status == "APPROVED" and report.mortality_count:
        flock = db.query(Flock).filter_by(id=report.flock_id).first()
        if flock:
            flock.current_count = max(0, (flock.current_count or 0) - report.mortality_count)
            flock.mortality_count = (flock.mortality_count or 0) + report.mortality_count

    db.add(AuditLog(
        user_id=approver_id,
        action=f"report_{decision}d",
        details=f"Report #{report.id} (flock {report.flock_id}, {report.report_date})"
    ))
    db.commit()
    return report

def format_report(report: FarmReport) -> str:
    text = (f"📋 **Report #{report.id}** — {report.flock.name if report.flock else report.flock_id}\n"
            f"📅 {report.report_date.strftime('%b %d, %Y')}\n"
            f"🍽️ Feed: {report.feed_consumed_kg or 0:.1f} kg"
            f"{f' ({report.feed_brand})' if report.feed_brand else ''}\n"
            f"⚰️ Deaths: {report.mortality_count or 0}\n")
    if report.temperature_celsius is not None:
        text += f"🌡️ Temp: {report.temperature_celsius:.1f}°C\n"
    if report.clinical_signs:
        text += f"🩺 _{report.clinical_signs}_\n"
    if report.handover_notes:
        text += f"🗒️ {report.handover_notes}\n"
    return text

async def _show_pending(message: types.Message, edit: bool = False):
    db = next(get_db())
    reports = get_pending_reports(db)
    texts = [(r.id, format_report(r)) for r in reports]
    db.close()

    if not texts:
        text = "✅ **All Caught Up!**\n\nNo reports awaiting review."
        if edit:
            await message.edit_text(text, parse_mode="Markdown", reply_markup=get_back_home_keyboard())
        else:
            await message.answer(text, parse_mode="Markdown", reply_markup=get_back_home_keyboard())
        return

    for report_id, text in texts:
        keyboard = [[
            InlineKeyboardButton(text="✅ Approve", callback_data=f"rep_approve_{report_id}"),
            InlineKeyboardButton(text="❌ Reject", callback_data=f"rep_reject_{report_id}")
        ]]
        await message.answer(text, parse_mode="Markdown", reply_markup=InlineKeyboardMarkup(inline_keyboard=keyboard))

@router.message(Command("pending"))
async def cmd_pending(message: types.Message):
    if not has_permission(get_user_role(message.from_user.id), "approvals"):
        await message.answer("⛔ Access Denied.")
        return
    await _show_pending(message)

@router.callback_query(F.data == "menu_pending")
async def menu_pending(callback: types.CallbackQuery):
    if not has_permission(get_user_role(callback.from_user.id), "approvals"):
        await callback.answer("⛔ Access Denied.", show_alert=True)
        return
    await _show_pending(callback.message, edit=True)
    await callback.answer()

@router.callback_query(F.data.startswith("rep_approve_") | F.data.startswith("rep_reject_"))
async def decide_report(callback: types.CallbackQuery):
    if not has_permission(get_user_role(callback.from_user.id), "approvals"):
        await callback.answer("⛔ Access Denied.", show_alert=True)
        return

    _, decision, report_id = callback.data.split("_")

    db = next(get_db())
    report = apply_decision(db, int(report_id), decision, callback.from_user.id)
    flock_id = report.flock_id if report else None
    text = format_report(report) if report else ""
    db.close()

    if report is None:
        await callback.answer("⚠️ Report already processed.", show_alert=True)
        return

    status_line = "✅ Approved" if decision == "approve" else "❌ Rejected"
    await callback.message.edit_text(f"{text}\n**{status_line}**", parse_mode="Markdown")
    await callback.answer(status_line)

    if decision == "approve":
        response = await asyncio.to_thread(run_fcr_job, {"flock_id": flock_id})
        if not response.get("success"):
            logger.warning("FCR recalculation after approving report %s failed", report_id)
