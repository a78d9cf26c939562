import asyncio

from forumbadges.bot import main as run
from forumbadges.database import start_db
from forumbadges.database.db_manager import DBManager
from forumbadges.utils.env import get_settings, load_env
from forumbadges.utils.logs import setup_logging

if __name__ == '__main__':
    load_env()
    setup_logging(get_settings().log_level)

    with DBManager() as db:
        # Schema + migrations
        start_db.run(db)

    asyncio.run(run())
