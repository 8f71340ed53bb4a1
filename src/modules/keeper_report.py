import math
from aiogram import Router, types, F
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from database import get_db, Flock, FarmReport, WeightRecord, AuditLog
from datetime import date
from utils import get_back_home_keyboard, get_main_menu_keyboard, get_user_role, has_permission

router = Router()

class ReportStates(StatesGroup):
    select_flock = State()
    feed = State()
    feed_brand = State()
    mortality = State()
    temperature = State()
    weights = State()
    notes = State()
    confirm = State()

def parse_number(text: str) -> float:
    """float() that refuses nan/inf."""
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"Not a finite number: {text!r}")
    return value

def parse_weights(text: str) -> list[float]:
    """Parse '1.2, 1.35 1.4' into kg values. Raises ValueError on bad or non-positive input."""
    parts = [p for p in text.replace(",", " ").split() if p]
    if not parts:
        raise ValueError("No weights given")
    weights = [parse_number(p) for p in parts]
    if any(w <= 0 for w in weights):
        raise ValueError("Weights must be positive")
    return weights

def submit_report(db, reporter_id: int, flock_id: int, feed_kg: float, mortality: int, feed_brand: str,
                  temperature: float | None = None, weights=None, report_date: date | None = None,
                  clinical_signs: str = "", handover_notes: str = "") -> FarmReport:
    """Store a PENDING report plus its weight samples."""
    if not math.isfinite(feed_kg) or feed_kg < 0:
        raise ValueError("Feed must be a non-negative number")
    if mortality < 0:
        raise ValueError("Mortality cannot be negative")
    if temperature is not None and not math.isfinite(temperature):
        raise ValueError("Temperature must be a number")
    if any(not math.isfinite(w) or w <= 0 for w in weights or []):
        raise ValueError("Weights must be positive numbers")
    feed_brand = (feed_brand or "").strip()
    if not feed_brand:
        raise ValueError("Feed brand is required")

    flock = db.query(Flock).filter_by(id=flock_id, status="ACTIVE").first()
    if not flock:
        raise ValueError(f"Flock {flock_id} is not active")

    report_date = report_date or date.today()
    report = FarmReport(
        flock_id=flock_id,
        reporter_id=reporter_id,
        report_date=report_date,
        feed_consumed_kg=feed_kg,
        feed_brand=feed_brand,
        mortality_count=mortality,
        temperature_celsius=temperature,
        clinical_signs=clinical_signs,
        handover_notes=(handover_notes or "").strip(),
        status="PENDING"
    )
    db.add(report)

    for i, weight in enumerate(weights or [], start=1):
        db.add(WeightRecord(
            flock_id=flock_id,
            sample_date=report_date,
            bird_identifier=f"S{i}",
            weight_kg=weight
        ))

    db.add(AuditLog(
        user_id=reporter_id,
        action="report_submitted",
        details=f"Flock {flock.name}: feed {feed_kg} kg, deaths {mortality}, {len(weights or [])} weights"
    ))
    db.commit()
    return report

async def _start(message: types.Message, state: FSMContext, user_id: int, edit: bool = False):
    if not has_permission(get_user_role(user_id), "new_report"):
        await message.answer("⛔ Access Denied.")
        return

    db = next(get_db())
    flocks = db.query(Flock).filter_by(status="ACTIVE").order_by(Flock.id).all()
    keyboard = [[InlineKeyboardButton(text=f"🐥 {f.name}", callback_data=f"rflock_{f.id}")] for f in flocks]
    db.close()

    if not keyboard:
        await message.answer("⚠️ No active flocks. Ask a manager to create one.")
        return

    keyboard.append([InlineKeyboardButton(text="⬅️ Cancel", callback_data='main_menu')])
    text = "📝 **Daily Report**\n\nStep 1/7: Which flock?"
    markup = InlineKeyboardMarkup(inline_keyboard=keyboard)
    if edit:
        await message.edit_text(text, parse_mode="Markdown", reply_markup=markup)
    else:
        await message.answer(text, parse_mode="Markdown", reply_markup=markup)
    await state.set_state(ReportStates.select_flock)

@router.message(Command("report"))
async def cmd_report(message: types.Message, state: FSMContext):
    await _start(message, state, message.from_user.id)

@router.callback_query(F.data == "menu_new_report")
async def menu_new_report(callback: types.CallbackQuery, state: FSMContext):
    await _start(callback.message, state, callback.from_user.id, edit=True)
    await callback.answer()

@router.callback_query(ReportStates.select_flock, F.data.startswith("rflock_"))
async def receive_flock(callback: types.CallbackQuery, state: FSMContext):
    await state.update_data(flock_id=int(callback.data.split("_")[1]))
    await callback.message.edit_text(
        "Step 2/7: **Feed** 🍽️\n\nHow much feed was consumed today (kg)?",
        parse_mode="Markdown",
        reply_markup=get_back_home_keyboard('menu_new_report')
    )
    await state.set_state(ReportStates.feed)
    await callback.answer()

@router.message(ReportStates.feed)
async def receive_feed(message: types.Message, state: FSMContext):
    try:
        feed = parse_number(message.text)
    except ValueError:
        await message.answer("⚠️ Please enter a number (kg).")
        return
    if feed < 0:
        await message.answer("⚠️ Feed cannot be negative.")
        return

    await state.update_data(feed=feed)
    await message.answer("Step 3/7: **Feed Brand** 🏷️\n\nWhich feed was used?", parse_mode="Markdown")
    await state.set_state(ReportStates.feed_brand)

@router.message(ReportStates.feed_brand)
async def receive_feed_brand(message: types.Message, state: FSMContext):
    brand = (message.text or "").strip()
    if not brand:
        await message.answer("⚠️ Feed brand is required.")
        return

    await state.update_data(feed_brand=brand)
    await message.answer("Step 4/7: **Mortality** ⚰️\n\nHow many birds died?", parse_mode="Markdown")
    await state.set_state(ReportStates.mortality)

@router.message(ReportStates.mortality)
async def receive_mortality(message: types.Message, state: FSMContext):
    if not message.text.isdigit():
        await message.answer("⚠️ Please enter a number.")
        return

    await state.update_data(mortality=int(message.text))
    keyboard = [[InlineKeyboardButton(text="⏩ Skip", callback_data="rskip_temp")]]
    await message.answer(
        "Step 5/7: **Temperature** 🌡️\n\nHouse temperature (°C)?",
        parse_mode="Markdown",
        reply_markup=InlineKeyboardMarkup(inline_keyboard=keyboard)
    )
    await state.set_state(ReportStates.temperature)

async def _ask_weights(message: types.Message, state: FSMContext):
    keyboard = [[InlineKeyboardButton(text="⏩ No Samples", callback_data="rskip_weights")]]
    await message.answer(
        "Step 6/7: **Weight Samples** ⚖️\n\nEnter sampled bird weights in kg, separated by commas\n(e.g. `1.2, 1.35, 1.4`):",
        parse_mode="Markdown",
        reply_markup=InlineKeyboardMarkup(inline_keyboard=keyboard)
    )
    await state.set_state(ReportStates.weights)

@router.callback_query(ReportStates.temperature, F.data == "rskip_temp")
async def skip_temperature(callback: types.CallbackQuery, state: FSMContext):
    await state.update_data(temperature=None)
    await _ask_weights(callback.message, state)
    await callback.answer()

@router.message(ReportStates.temperature)
async def receive_temperature(message: types.Message, state: FSMContext):
    try:
        temperature = parse_number(message.text)
    except ValueError:
        await message.answer("⚠️ Please enter a number (°C).")
        return

    await state.update_data(temperature=temperature)
    await _ask_weights(message, state)

async def _ask_notes(message: types.Message, state: FSMContext):
    keyboard = [[InlineKeyboardButton(text="⏩ No Notes", callback_data="rskip_notes")]]
    await message.answer(
        "Step 7/7: **Handover Notes** 🗒️\n\nAnything the next shift should know?",
        parse_mode="Markdown",
        reply_markup=InlineKeyboardMarkup(inline_keyboard=keyboard)
    )
    await state.set_state(ReportStates.notes)

@router.callback_query(ReportStates.weights, F.data == "rskip_weights")
async def skip_weights(callback: types.CallbackQuery, state: FSMContext):
    await state.update_data(weights=[])
    await _ask_notes(callback.message, state)
    await callback.answer()

@router.message(ReportStates.weights)
async def receive_weights(message: types.Message, state: FSMContext):
    try:
        weights = parse_weights(message.text)
    except ValueError:
        await message.answer("⚠️ Enter positive numbers separated by commas.")
        return

    await state.update_data(weights=weights)
    await _ask_notes(message, state)

async def _show_confirm(message: types.Message, state: FSMContext):
    data = await state.get_data()
    weights = data.get('weights') or []
    temp = data.get('temperature')

    text = (f"Confirm Report:\n\n"
            f"🍽️ Feed: {data.get('feed'):.1f} kg ({data.get('feed_brand')})\n"
            f"⚰️ Deaths: {data.get('mortality')}\n"
            f"🌡️ Temp: {f'{temp:.1f}°C' if temp is not None else '—'}\n"
            f"⚖️ Samples: {', '.join(f'{w:g}' for w in weights) or '—'}\n"
            f"🗒️ Notes: {data.get('handover_notes') or '—'}")

    keyboard = [
        [InlineKeyboardButton(text="✅ Submit", callback_data="rconfirm")],
        [InlineKeyboardButton(text="❌ Cancel", callback_data="main_menu")]
    ]
    await message.answer(text, reply_markup=InlineKeyboardMarkup(inline_keyboard=keyboard))
    await state.set_state(ReportStates.confirm)

@router.callback_query(ReportStates.notes, F.data == "rskip_notes")
async def skip_notes(callback: types.CallbackQuery, state: FSMContext):
    await state.update_data(handover_notes="")
    await _show_confirm(callback.message, state)
    await callback.answer()

@router.message(ReportStates.notes)
async def receive_notes(message: types.Message, state: FSMContext):
    await state.update_data(handover_notes=(message.text or "").strip())
    await _show_confirm(message, state)

@router.callback_query(ReportStates.confirm, F.data == "rconfirm")
async def confirm_report(callback: types.CallbackQuery, state: FSMContext):
    data = await state.get_data()

    db = next(get_db())
    try:
        report = submit_report(
            db,
            reporter_id=callback.from_user.id,
            flock_id=data.get('flock_id'),
            feed_kg=data.get('feed'),
            mortality=data.get('mortality'),
            feed_brand=data.get('feed_brand'),
            temperature=data.get('temperature'),
            weights=data.get('weights'),
            handover_notes=data.get('handover_notes', "")
        )
        report_id = report.id
    except ValueError as e:
        await callback.answer(f"⚠️ {e}", show_alert=True)
        return
    finally:
        db.close()

    await state.clear()
    await callback.message.edit_text(
        f"✔️ **Report #{report_id} Submitted!**\n\nA manager will review it shortly.",
        parse_mode="Markdown",
        reply_markup=get_main_menu_keyboard(get_user_role(callback.from_user.id))
    )
    await callback.answer()
