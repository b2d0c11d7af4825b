# handlers/bill_handlers.py
import logging

from aiogram import F, Router, types
from aiogram.filters import Command
from aiogram.types import CallbackQuery

from pos_terminal.models.errors import NetworkFailure, PrintFailure, RemoteRejected
from pos_terminal.services.order_service import OrderService
from pos_terminal.utils.keyboard_utils import get_bills_keyboard
from pos_terminal.utils.utils import format_bill

logger = logging.getLogger(__name__)
router = Router()


@router.message(Command("bills"))
async def bills_handler(msg: types.Message, order_service: OrderService):
    try:
        bills = await order_service.fetch_printed_bills()
    except (NetworkFailure, RemoteRejected) as e:
        logger.error(f"Failed to fetch printed bills: {e}")
        await msg.answer(f"❌ Could not load bills: {e}")
        return
    if not bills:
        await msg.answer("No printed bills found.")
        return
    text = "\n\n".join(format_bill(bill) for bill in bills[:10])
    await msg.answer(text, parse_mode="Markdown", reply_markup=get_bills_keyboard(bills[:10]))


@router.callback_query(F.data.startswith("print_"))
async def print_bill_handler(callback: CallbackQuery, order_service: OrderService):
    bill_key = callback.data[len("print_"):]
    try:
        bills = await order_service.fetch_printed_bills()
    except (NetworkFailure, RemoteRejected) as e:
        await callback.answer(f"Error printing bill: {e}", show_alert=True)
        return

    bill = next((b for b in bills if b.bill_key == bill_key), None)
    if bill is None:
        await callback.answer("Bill not found!")
        return

    try:
        message = await order_service.print_bill(bill)
    except PrintFailure as e:
        logger.error(f"Failed to send bill to printer: {e}")
        await callback.answer(f"Error printing bill: {e}", show_alert=True)
        return
    await callback.answer(message)
    logger.info(f"Bill {bill_key} printed on request of {callback.from_user.id}")
