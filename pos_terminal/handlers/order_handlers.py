# handlers/order_handlers.py
import logging

from aiogram import F, Router, types
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from pos_terminal.models.errors import InvalidOrderError, StoreIOError
from pos_terminal.models.models import ItemStatus, Size
from pos_terminal.services.order_service import OrderService
from pos_terminal.services.sync_scheduler import SyncScheduler
from pos_terminal.states.states import OrderStates
from pos_terminal.storage.catalog_storage import ProductCatalog
from pos_terminal.utils.keyboard_utils import (
    get_confirm_close_keyboard,
    get_order_keyboard,
    get_seats_keyboard,
    get_status_keyboard,
)
from pos_terminal.utils.utils import format_order, format_sync_result, product_label

logger = logging.getLogger(__name__)
router = Router()

ADD_USAGE = "Usage: /add <seat> <product id> [quantity] [Small|Medium]"


@router.message(Command("add"))
async def add_item_handler(msg: types.Message, command: CommandObject, state: FSMContext,
                           catalog: ProductCatalog):
    args = (command.args or "").split()
    try:
        seat_no = int(args[0])
        product_id = int(args[1])
        quantity = int(args[2]) if len(args) > 2 else 1
        size = Size(args[3].capitalize()) if len(args) > 3 else Size.SMALL
    except (IndexError, ValueError):
        await msg.answer(ADD_USAGE)
        return

    if catalog.get(product_id) is None and len(catalog):
        await msg.answer(f"Product {product_id} is not in the catalog.")
        return

    await state.update_data(seat_no=seat_no, product_id=product_id, quantity=quantity, size=size.value)
    await state.set_state(OrderStates.waiting_for_instructions)
    await msg.answer(
        f"{product_label(product_id, catalog)} x{quantity} ({size.value}) for seat {seat_no}.\n"
        f"Any special instructions? Send 'no' to skip."
    )


@router.message(OrderStates.waiting_for_instructions)
async def process_instructions(message: Message, state: FSMContext, order_service: OrderService,
                               catalog: ProductCatalog):
    instructions = (message.text or "").strip()
    if instructions.lower() in ("no", "-"):
        instructions = ""
    data = await state.get_data()
    await state.clear()

    try:
        order = await order_service.add_item(
            data["seat_no"], data["product_id"], data["quantity"], Size(data["size"]), instructions
        )
    except InvalidOrderError as e:
        await message.answer(f"❌ {e}")
        return
    except StoreIOError as e:
        logger.error(f"Failed to update order: {e}")
        await message.answer("❌ Could not save the order on this terminal.")
        return

    await message.answer(format_order(order, catalog), parse_mode="Markdown",
                         reply_markup=get_order_keyboard(order))


@router.message(Command("seats"))
async def seats_handler(msg: types.Message, order_service: OrderService):
    seats = await order_service.list_open_seats()
    if not seats:
        await msg.answer("No open seats.")
        return
    await msg.answer("Select a seat:", reply_markup=get_seats_keyboard(seats))


@router.callback_query(F.data == "seats")
async def back_to_seats(callback: CallbackQuery, order_service: OrderService):
    seats = await order_service.list_open_seats()
    await callback.message.edit_text(
        "Select a seat:" if seats else "No open seats.",
        reply_markup=get_seats_keyboard(seats)
    )
    await callback.answer()


@router.callback_query(F.data.startswith("seat_"))
async def seat_details(callback: CallbackQuery, order_service: OrderService, catalog: ProductCatalog):
    seat_no = int(callback.data.split("_")[1])
    order = await order_service.get_order(seat_no)
    if order is None:
        await callback.answer("Seat not found!")
        return
    await callback.message.edit_text(format_order(order, catalog), parse_mode="Markdown",
                                     reply_markup=get_order_keyboard(order))
    await callback.answer()


@router.callback_query(F.data.startswith("item_"))
async def item_status_menu(callback: CallbackQuery):
    _, seat_no, item_index = callback.data.split("_")
    await callback.message.edit_reply_markup(reply_markup=get_status_keyboard(seat_no, item_index))
    await callback.answer()


@router.callback_query(F.data.startswith("status_"))
async def item_status_changed(callback: CallbackQuery, order_service: OrderService, catalog: ProductCatalog):
    _, seat_no, item_index, status = callback.data.split("_", 3)
    seat_no, item_index = int(seat_no), int(item_index)
    order = await order_service.get_order(seat_no)
    if order is None or item_index >= len(order.items):
        await callback.answer("Item not found!")
        return
    try:
        order = await order_service.change_item_status(seat_no, order.items[item_index].cart_item_id,
                                                       ItemStatus(status))
    except InvalidOrderError as e:
        await callback.answer(str(e), show_alert=True)
        return
    except StoreIOError as e:
        logger.error(f"Failed to update item status: {e}")
        await callback.answer("❌ Could not save the status on this terminal.", show_alert=True)
        return
    await callback.message.edit_text(format_order(order, catalog), parse_mode="Markdown",
                                     reply_markup=get_order_keyboard(order))
    await callback.answer()


@router.callback_query(F.data.startswith("close_"))
async def confirm_close_seat(callback: CallbackQuery):
    seat_no = callback.data.split("_")[1]
    await callback.bot.send_message(
        chat_id=callback.from_user.id,
        text=f"Close the order for seat {seat_no}?",
        reply_markup=get_confirm_close_keyboard(seat_no)
    )
    await callback.answer()


@router.callback_query(F.data.startswith("confirm_close_"))
async def close_seat_confirmed(callback: CallbackQuery, order_service: OrderService):
    seat_no = int(callback.data.split("_")[2])
    try:
        await order_service.close_seat(seat_no)
    except InvalidOrderError as e:
        await callback.message.edit_text(f"❌ {e}")
    except StoreIOError as e:
        logger.error(f"Failed to close order: {e}")
        await callback.message.edit_text(f"❌ Could not close seat {seat_no} on this terminal.")
    else:
        await callback.message.edit_text(f"✅ Order for seat {seat_no} closed successfully.")
    await callback.answer()


@router.callback_query(F.data == "cancel_close")
async def cancel_close(callback: CallbackQuery):
    await callback.message.edit_text("Closing cancelled.")
    await callback.answer()


@router.message(Command("sync"))
async def sync_handler(msg: types.Message, sync_scheduler: SyncScheduler):
    try:
        result = await sync_scheduler.sync_now()
    except StoreIOError as e:
        logger.error(f"Manual sync failed: {e}")
        await msg.answer("❌ Local store error, sync aborted.")
        return
    await msg.answer(format_sync_result(result))
