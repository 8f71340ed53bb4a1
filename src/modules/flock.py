from aiogram import Router, types, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from database import get_db, Flock, AuditLog
from datetime import datetime
from utils import get_back_home_keyboard, get_main_menu_keyboard, get_user_role, has_permission

router = Router()

FLOCK_STATUSES = ["ACTIVE", "COMPLETED", "CANCELLED"]

class FlockStates(StatesGroup):
    new_name = State()
    new_start_date = State()
    new_bird_count = State()
    new_confirm = State()

def create_flock(db, name: str, start_date, bird_count: int, user_id: int) -> Flock:
    if bird_count < 0:
        raise ValueError("Bird count cannot be negative")
    flock = Flock(
        name=name,
        start_date=start_date,
        total_birds=bird_count,
        current_count=bird_count,
        status="ACTIVE"
    )
    db.add(flock)
    db.add(AuditLog(user_id=user_id, action="new_flock", details=f"Created {name} ({bird_count} birds)"))
    db.commit()
    return flock

def set_flock_status(db, flock_id: int, status: str, user_id: int) -> Flock | None:
    if status not in FLOCK_STATUSES:
        raise ValueError(f"Unknown flock status: {status}")
    flock = db.query(Flock).filter_by(id=flock_id).first()
    if not flock:
        return None
    flock.status = status
    db.add(AuditLog(user_id=user_id, action="flock_status", details=f"{flock.name} -> {status}"))
    db.commit()
    return flock

@router.callback_query(F.data == "menu_flocks")
async def menu_flocks(callback: types.CallbackQuery):
    if not has_permission(get_user_role(callback.from_user.id), "flocks"):
        await callback.answer("⛔ Access Denied.", show_alert=True)
        return

    db = next(get_db())
    flocks = db.query(Flock).filter_by(status="ACTIVE").order_by(Flock.id).all()
    lines = [f"🐥 **{f.name}** — {f.current_count}/{f.total_birds} birds (since {f.start_date})" for f in flocks]
    keyboard = [[InlineKeyboardButton(text=f"🏁 Complete {f.name}", callback_data=f"flock_done_{f.id}")] for f in flocks]
    db.close()

    keyboard.append([InlineKeyboardButton(text="➕ New Flock", callback_data='flock_new')])
    keyboard.append([InlineKeyboardButton(text="⬅️ Back", callback_data='main_menu')])

    text = "🐥 **Active Flocks**\n————————————————\n"
    text += "\n".join(lines) if lines else "_No active flocks._"
    await callback.message.edit_text(
        text=text,
        parse_mode="Markdown",
        reply_markup=InlineKeyboardMarkup(inline_keyboard=keyboard)
    )
    await callback.answer()

@router.callback_query(F.data.startswith("flock_done_"))
async def complete_flock(callback: types.CallbackQuery):
    if not has_permission(get_user_role(callback.from_user.id), "flocks"):
        await callback.answer("⛔ Access Denied.", show_alert=True)
        return

    flock_id = int(callback.data.split("_")[2])
    db = next(get_db())
    flock = set_flock_status(db, flock_id, "COMPLETED", callback.from_user.id)
    name = flock.name if flock else None
    db.close()

    if not name:
        await callback.answer("⚠️ Flock not found.", show_alert=True)
        return
    await callback.message.edit_text(
        f"🏁 **{name}** marked as completed.",
        parse_mode="Markdown",
        reply_markup=get_back_home_keyboard('menu_flocks')
    )
    await callback.answer()

async def _ask_name(message: types.Message, state: FSMContext):
    await message.answer(
        "🆕 **New Flock Onboarding**\n\nEnter a unique name for this flock (e.g. 'Batch 7 - Mar 2026'):",
        parse_mode="Markdown",
        reply_markup=get_back_home_keyboard('main_menu')
    )
    await state.set_state(FlockStates.new_name)

@router.message(Command("newflock"))
async def cmd_new_flock(message: types.Message, state: FSMContext):
    if not has_permission(get_user_role(message.from_user.id), "flocks"):
        await message.answer("⛔ Access Denied.")
        return
    await _ask_name(message, state)

@router.callback_query(F.data == "flock_new")
async def cb_new_flock(callback: types.CallbackQuery, state: FSMContext):
    if not has_permission(get_user_role(callback.from_user.id), "flocks"):
        await callback.answer("⛔ Access Denied.", show_alert=True)
        return
    await _ask_name(callback.message, state)
    await callback.answer()

@router.message(FlockStates.new_name)
async def receive_new_name(message: types.Message, state: FSMContext):
    await state.update_data(new_name=message.text.strip())
    await message.answer(
        "📅 **Start Date**\n\nEnter date the birds were placed (YYYY-MM-DD):",
        parse_mode="Markdown"
    )
    await state.set_state(FlockStates.new_start_date)

@router.message(FlockStates.new_start_date)
async def receive_start_date(message: types.Message, state: FSMContext):
    try:
        d = datetime.strptime(message.text, "%Y-%m-%d").date()
    except ValueError:
        await message.answer("⚠️ Invalid format. Use YYYY-MM-DD (e.g. 2026-03-01).")
        return

    await state.update_data(new_start_date=d.isoformat())
    await message.answer(
        "🔢 **Bird Count**\n\nHow many birds were placed?",
        parse_mode="Markdown"
    )
    await state.set_state(FlockStates.new_bird_count)

@router.message(FlockStates.new_bird_count)
async def receive_bird_count(message: types.Message, state: FSMContext):
    if not message.text.isdigit():
        await message.answer("⚠️ Enter a number.")
        return

    count = int(message.text)
    await state.update_data(new_bird_count=count)
    data = await state.get_data()

    text = (f"Confirm New Flock:\n\n"
            f"🏷️ Name: {data.get('new_name')}\n"
            f"📅 Placed: {data.get('new_start_date')}\n"
            f"🔢 Birds: {count}")

    keyboard = [[InlineKeyboardButton(text="✅ Create Flock", callback_data="confirm_new_flock")]]
    await message.answer(text, reply_markup=InlineKeyboardMarkup(inline_keyboard=keyboard))
    await state.set_state(FlockStates.new_confirm)

@router.callback_query(FlockStates.new_confirm, F.data == "confirm_new_flock")
async def confirm_new_flock(callback: types.CallbackQuery, state: FSMContext):
    data = await state.get_data()

    db = next(get_db())
    create_flock(
        db,
        name=data.get('new_name'),
        start_date=datetime.strptime(data.get('new_start_date'), "%Y-%m-%d").date(),
        bird_count=data.get('new_bird_count'),
        user_id=callback.from_user.id
    )
    db.close()

    await state.clear()
    await callback.message.edit_text(
        "✅ **Flock Created!**",
        parse_mode="Markdown",
        reply_markup=get_main_menu_keyboard(get_user_role(callback.from_user.id))
    )
    await callback.answer()
