import logging
from database import get_db, User
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

ROLES = ["ADMIN", "ACCOUNTANT", "MANAGER", "KEEPER", "INVESTOR"]

# Role-based permissions
ROLE_PERMISSIONS = {
    "ADMIN": ["new_report", "approvals", "fcr_insights", "recalculate", "flocks", "users", "settings"],
    "MANAGER": ["approvals", "fcr_insights", "recalculate", "flocks"],
    "ACCOUNTANT": ["fcr_insights"],
    "KEEPER": ["new_report"],
    "INVESTOR": ["fcr_insights"]  # Read-only
}

def get_user_role(telegram_id: int) -> str:
    """Get user role from database, default to ADMIN for ADMIN_IDS, INVESTOR otherwise."""
    from config import cfg
    db = next(get_db())
    try:
        user = db.query(User).filter_by(telegram_id=telegram_id, is_active=True).first()
        if user:
            return user.role
    except SQLAlchemyError:
        logger.warning("Could not look up role for %s, using fallback", telegram_id)
    finally:
        db.close()

    return "ADMIN" if telegram_id in cfg.ADMIN_IDS else "INVESTOR"

def has_permission(role: str, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, ROLE_PERMISSIONS["INVESTOR"])

def get_main_menu_keyboard(role: str = "ADMIN"):
    """Generate role-filtered main menu keyboard."""
    perms = ROLE_PERMISSIONS.get(role, ROLE_PERMISSIONS["INVESTOR"])

    keyboard = []

    # Row 1: Daily report (keepers)
    if "new_report" in perms:
        keyboard.append([InlineKeyboardButton(text="📝 Daily Report", callback_data='menu_new_report')])

    # Row 2: Approvals & FCR
    row2 = []
    if "approvals" in perms:
        row2.append(InlineKeyboardButton(text="✅ Pending Reports", callback_data='menu_pending'))
    if "fcr_insights" in perms:
        row2.append(InlineKeyboardButton(text="📈 FCR Insights", callback_data='menu_fcr'))
    if row2:
        keyboard.append(row2)

    # Row 3: Flocks & Users
    row3 = []
    if "flocks" in perms:
        row3.append(InlineKeyboardButton(text="🐥 Flocks", callback_data='menu_flocks'))
    if "users" in perms:
        row3.append(InlineKeyboardButton(text="👥 Users", callback_data='menu_users'))
    if row3:
        keyboard.append(row3)

    return InlineKeyboardMarkup(inline_keyboard=keyboard)

def get_back_home_keyboard(back_callback: str = 'main_menu'):
    keyboard = [
        [InlineKeyboardButton(text="⬅️ Back", callback_data=back_callback),
         InlineKeyboardButton(text="🏠 Home", callback_data='main_menu')]
    ]
    return InlineKeyboardMarkup(inline_keyboard=keyboard)

def format_kg(amount: float) -> str:
    return f"{amount:,.2f} kg"
