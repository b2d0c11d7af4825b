# main.py
import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.types import BotCommand

from pos_terminal.config import ORDERS_DB_FILE, PRODUCTS_FILE, SYNC_QUEUE_FILE
from pos_terminal.config.config import (
    BOT_TOKEN,
    CONNECTIVITY_CHECK_INTERVAL,
    DEFERRED_SYNC_ENABLED,
    LOG_LEVEL,
    REMOTE_BASE_URL,
    REQUEST_TIMEOUT,
)
from pos_terminal.handlers.bill_handlers import router as bill_router
from pos_terminal.handlers.order_handlers import router as order_router
from pos_terminal.handlers.user_handlers import router as user_router
from pos_terminal.services.connectivity import ConnectivityWatcher
from pos_terminal.services.order_service import OrderService
from pos_terminal.services.reconciliation_client import ReconciliationClient
from pos_terminal.services.sync_scheduler import Backoff, SyncScheduler
from pos_terminal.storage.catalog_storage import ProductCatalog
from pos_terminal.storage.orders_storage import OrderStore
from pos_terminal.storage.sync_queue_storage import DeferredSyncQueue

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


async def run_bot(order_service: OrderService, scheduler: SyncScheduler, catalog: ProductCatalog):
    bot = Bot(token=BOT_TOKEN)
    dp = Dispatcher()

    dp.include_router(user_router)
    dp.include_router(order_router)
    dp.include_router(bill_router)

    try:
        await bot.set_my_commands([
            BotCommand(command="seats", description="Open seats"),
            BotCommand(command="add", description="Add an item to a seat"),
            BotCommand(command="sync", description="Sync orders now"),
            BotCommand(command="bills", description="Printed bills"),
        ])
        logger.info("Bot started")
        await dp.start_polling(bot, order_service=order_service, sync_scheduler=scheduler, catalog=catalog)
    finally:
        await bot.session.close()


async def main():
    store = OrderStore(ORDERS_DB_FILE)
    catalog = ProductCatalog(PRODUCTS_FILE)
    await store.load()
    await catalog.load()

    client = ReconciliationClient(REMOTE_BASE_URL, timeout=REQUEST_TIMEOUT)
    queue = DeferredSyncQueue(SYNC_QUEUE_FILE) if DEFERRED_SYNC_ENABLED else None
    scheduler = SyncScheduler(store, client, catalog, queue=queue, backoff=Backoff())
    order_service = OrderService(store, catalog, client, scheduler)
    watcher = ConnectivityWatcher(client, scheduler.on_connectivity_regained, CONNECTIVITY_CHECK_INTERVAL)

    watcher_task = None
    try:
        await order_service.bootstrap()
        if DEFERRED_SYNC_ENABLED:
            await scheduler.start()
        watcher_task = asyncio.create_task(watcher.run())

        if BOT_TOKEN:
            await run_bot(order_service, scheduler, catalog)
        else:
            logger.warning("BOT_TOKEN is not set, running the sync engine without the bot")
            await asyncio.Event().wait()
    finally:
        if watcher_task is not None:
            watcher_task.cancel()
        await scheduler.stop()
        await client.close()
        logger.info("Terminal stopped")


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
