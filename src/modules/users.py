"""User and role management (admin only)."""
from aiogram import Router, types, F
from aiogram.filters import Command, CommandObject
from database import get_db, User, AuditLog
from utils import ROLES, get_back_home_keyboard, get_user_role, has_permission

router = Router()

USAGE = "Usage: `/adduser <telegram_id> <ROLE> <name>`\nRoles: " + ", ".join(ROLES)

def upsert_user(db, telegram_id: int, role: str, name: str, admin_id: int) -> User:
    """Create the user or update role/name of an existing one (re-activating it)."""
    role = role.upper()
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    user = db.query(User).filter_by(telegram_id=telegram_id).first()
    if user:
        user.role = role
        user.name = name
        user.is_active = True
    else:
        user = User(telegram_id=telegram_id, role=role, name=name)
        db.add(user)

    db.add(AuditLog(user_id=admin_id, action="user_role", details=f"{name} ({telegram_id}) -> {role}"))
    db.commit()
    return user

def list_users_text(db) -> str:
    users = db.query(User).filter_by(is_active=True).order_by(User.role, User.name).all()
    if not users:
        return "👥 **Users**\n\n_No users registered yet._"
    text = "👥 **Users**\n————————————————\n"
    for u in users:
        text += f"`{u.telegram_id}` **{u.name}** — {u.role}\n"
    return text

@router.message(Command("adduser"))
async def cmd_add_user(message: types.Message, command: CommandObject):
    if not has_permission(get_user_role(message.from_user.id), "users"):
        await message.answer("⛔ Access Denied.")
        return

    parts = (command.args or "").split(maxsplit=2)
    if len(parts) < 3 or not parts[0].isdigit():
        await message.answer(USAGE, parse_mode="Markdown")
        return

    db = next(get_db())
    try:
        user = upsert_user(db, int(parts[0]), parts[1], parts[2], message.from_user.id)
        text = f"✅ **{user.name}** is now {user.role}."
    except ValueError as e:
        text = f"⚠️ {e}\n\n{USAGE}"
    finally:
        db.close()

    await message.answer(text, parse_mode="Markdown")

@router.message(Command("users"))
async def cmd_users(message: types.Message):
    if not has_permission(get_user_role(message.from_user.id), "users"):
        await message.answer("⛔ Access Denied.")
        return

    db = next(get_db())
    text = list_users_text(db)
    db.close()
    await message.answer(text, parse_mode="Markdown")

@router.callback_query(F.data == "menu_users")
async def menu_users(callback: types.CallbackQuery):
    if not has_permission(get_user_role(callback.from_user.id), "users"):
        await callback.answer("⛔ Access Denied.", show_alert=True)
        return

    db = next(get_db())
    text = list_users_text(db) + "\n\n" + USAGE
    db.close()
    await callback.message.edit_text(text, parse_mode="Markdown", reply_markup=get_back_home_keyboard())
    await callback.answer()
