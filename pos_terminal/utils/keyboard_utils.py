# utils/keyboard_utils.py
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from pos_terminal.models.models import ItemStatus


def get_seats_keyboard(seats):
    keyboard = [
        [InlineKeyboardButton(text=f"Seat {seat}", callback_data=f"seat_{seat}")]
        for seat in seats
    ]
    return InlineKeyboardMarkup(inline_keyboard=keyboard)


def get_order_keyboard(order):
    keyboard = []
    for idx, item in enumerate(order.items):
        keyboard.append([
            InlineKeyboardButton(
                text=f"{idx + 1}. status: {item.status.value}",
                callback_data=f"item_{order.seat_no}_{idx}"
            )
        ])
    keyboard.append([
        InlineKeyboardButton(text=f"Close seat {order.seat_no}", callback_data=f"close_{order.seat_no}")
    ])
    keyboard.append([
        InlineKeyboardButton(text="Back to seats", callback_data="seats")
    ])
    return InlineKeyboardMarkup(inline_keyboard=keyboard)


def get_status_keyboard(seat_no, item_index):
    keyboard = InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text=status.value, callback_data=f"status_{seat_no}_{item_index}_{status.value}")
            for status in ItemStatus
        ],
        [
            InlineKeyboardButton(text="Back", callback_data=f"seat_{seat_no}")
        ]
    ])
    return keyboard


def get_confirm_close_keyboard(seat_no):
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="Confirm", callback_data=f"confirm_close_{seat_no}")],
        [InlineKeyboardButton(text="Cancel", callback_data="cancel_close")]
    ])


def get_bills_keyboard(bills):
    keyboard = []
    for bill in bills:
        keyboard.append([
            InlineKeyboardButton(
                text=f"Print seat {bill.seat_no} (${bill.grand_total:.2f})",
                callback_data=f"print_{bill.bill_key}"
            )
        ])
    return InlineKeyboardMarkup(inline_keyboard=keyboard)
