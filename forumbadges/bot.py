import logging
import pathlib

import discord
from discord.ext import commands

from forumbadges.database.db_manager import DBManager
from forumbadges.utils.env import get_settings

logger = logging.getLogger(__name__)


class ForumBadgesBot(commands.Bot):
    def __init__(self):
        super().__init__(command_prefix='/', intents=discord.Intents.default())

    async def setup_hook(self):
        cogs_path = pathlib.Path(__file__).parent / 'cogs'
        for file in cogs_path.glob('*_cog.py'):
            module = f'forumbadges.cogs.{file.stem}'
            try:
                await self.load_extension(module)
                logger.info(f'Loaded {module}')
            except Exception:
                logger.error(f'Failed to load {module}', exc_info=True)

    async def on_ready(self):
        guild_id = get_settings().guild_id
        if guild_id is None:
            raise RuntimeError('GUILD_ID not set in environment or .env')

        guild = discord.Object(id=guild_id)
        self.tree.copy_global_to(guild=guild)
        await self.tree.sync(guild=guild)
        logger.info(f'Bot ready! Synced commands to guild {guild_id}')


async def main():
    token = get_settings().discord_token
    if not token:
        raise RuntimeError('DISCORD_TOKEN not set in environment or .env')

    DBManager.init_pool()

    bot = ForumBadgesBot()
    try:
        async with bot:
            await bot.start(token)
    except Exception:
        logger.error('Bot failed due to an exception', exc_info=True)
    finally:
        DBManager.close_pool()
