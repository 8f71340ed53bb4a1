import asyncio
import logging
from aiogram import Bot, Dispatcher, types, F
from aiogram.filters import Command
from aiogram.exceptions import TelegramNetworkError
from config import cfg
from tenacity import retry, stop_never, wait_exponential, retry_if_exception_type, before_sleep_log

# Configure logging
logging.basicConfig(level=cfg.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize bot and dispatcher
bot = Bot(token=cfg.TELEGRAM_TOKEN)
dp = Dispatcher()

VERSION = "1.0.0"

@retry(
    stop=stop_never,
    wait=wait_exponential(multiplier=1, min=4, max=60),
    retry=retry_if_exception_type((TelegramNetworkError, ConnectionError, OSError)),
    before_sleep=before_sleep_log(logger, logging.WARNING)
)
async def resilient_polling():
    """Start polling with automatic retry on network errors."""
    logger.info("Starting polling...")
    await dp.start_polling(bot)

async def main():
    # Import routers
    from modules.keeper_report import router as report_router
    from modules.approvals import router as approvals_router
    from modules.fcr_insights import router as fcr_router, periodic_fcr
    from modules.flock import router as flock_router
    from modules.users import router as users_router

    # Register routers
    for r in [report_router, approvals_router, fcr_router, flock_router, users_router]:
        dp.include_router(r)

    # Main Menu Handler
    from utils import get_main_menu_keyboard, get_user_role

    @dp.message(Command("start"))
    async def cmd_start(message: types.Message):
        role = get_user_role(message.from_user.id)
        await message.answer(
            f"🐔 **FlockFund Operations**\nRole: {role}\nSelect an option below:",
            reply_markup=get_main_menu_keyboard(role),
            parse_mode="Markdown"
        )

    @dp.callback_query(F.data == "main_menu")
    async def cb_main_menu(callback: types.CallbackQuery):
        role = get_user_role(callback.from_user.id)
        await callback.message.edit_text(
            f"🐔 **FlockFund Operations**\nRole: {role}\nSelect an option below:",
            reply_markup=get_main_menu_keyboard(role),
            parse_mode="Markdown"
        )
        await callback.answer()

    fcr_task = None
    if cfg.FCR_INTERVAL_HOURS > 0:
        fcr_task = asyncio.create_task(periodic_fcr(cfg.FCR_INTERVAL_HOURS))

    logger.info("FlockFund Bot Started (v%s)! Admin UIDs: %s", VERSION, cfg.ADMIN_IDS)
    try:
        await resilient_polling()
    finally:
        if fcr_task:
            fcr_task.cancel()

if __name__ == '__main__':
    asyncio.run(main())
