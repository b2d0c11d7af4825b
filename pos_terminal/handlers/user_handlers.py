# handlers/user_handlers.py
from aiogram import Router, types
from aiogram.filters import Command
import logging

logger = logging.getLogger(__name__)
router = Router()

HELP_TEXT = (
    "/add <seat> <product id> [quantity] [Small|Medium] - add an item to a seat\n"
    "/seats - open seats, item status and closing\n"
    "/sync - push all orders to the server now\n"
    "/bills - printed bills"
)

@router.message(Command("start"))
async def start_handler(msg: types.Message):
    user = msg.from_user
    await msg.answer(
        f"Hello, {user.full_name}! This is the order terminal.\n"
        f"Orders are saved here first and synced with the server in the background.\n\n"
        f"{HELP_TEXT}"
    )
    logger.info(f"Operator {user.id} started the terminal bot")

@router.message(Command("help"))
async def help_handler(msg: types.Message):
    await msg.answer(HELP_TEXT)
