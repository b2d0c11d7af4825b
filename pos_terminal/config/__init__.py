# config/__init__.py
import os

# Data files live under the project root unless POS_DATA_DIR says otherwise
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
DATA_DIR = os.getenv("POS_DATA_DIR") or os.path.join(BASE_DIR, 'data')

ORDERS_DB_FILE = os.path.join(DATA_DIR, 'orders.json')
PRODUCTS_FILE = os.path.join(DATA_DIR, 'products.json')
SYNC_QUEUE_FILE = os.path.join(DATA_DIR, 'sync_queue.json')
