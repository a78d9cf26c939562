import asyncio
import logging

from discord import Interaction, app_commands
from discord.ext import commands

from forumbadges.criteria.engine import BadgeReviewEngine
from forumbadges.criteria.loader import load_criteria
from forumbadges.database.db_manager import DBManager
from forumbadges.errors import BadgeCriteriaError
from forumbadges.models.badge import Badge
from forumbadges.utils.embeds import criteria_embed

logger = logging.getLogger(__name__)


def _describe(badge_id: int) -> tuple[str, list[str]] | None:
    with DBManager() as db:
        badge = Badge.get(badge_id, db=db)
        if badge is None:
            return None
        details = [c.get_details() for c in load_criteria(badge_id, db)]
    return badge['name'], details


def _check(badge_id: int, user_id: int) -> bool | None:
    with DBManager() as db:
        return BadgeReviewEngine(db).check_user(badge_id, user_id)


def _review(badge_id: int) -> list[int]:
    with DBManager() as db:
        return BadgeReviewEngine(db).review_badge(badge_id)


class BadgeCriteriaCog(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @app_commands.command(name='criteria', description='Show what a badge requires')
    async def criteria(self, interaction: Interaction, badge_id: int):
        await interaction.response.defer(thinking=True, ephemeral=True)
        try:
            described = await asyncio.to_thread(_describe, badge_id)
        except BadgeCriteriaError as e:
            await interaction.followup.send(f'⚠️ {e}', ephemeral=True)
            return
        if described is None:
            await interaction.followup.send(f'No badge with id {badge_id}.', ephemeral=True)
            return
        name, details = described
        await interaction.followup.send(embed=criteria_embed(name, details), ephemeral=True)

    @app_commands.command(
        name='criteria_check', description='Check whether an LMS user meets a badge'
    )
    async def criteria_check(self, interaction: Interaction, badge_id: int, user_id: int):
        await interaction.response.defer(thinking=True, ephemeral=True)
        try:
            result = await asyncio.to_thread(_check, badge_id, user_id)
        except BadgeCriteriaError as e:
            await interaction.followup.send(f'⚠️ {e}', ephemeral=True)
            return
        if result is None:
            message = f'Badge {badge_id} has no criteria.'
        elif result:
            message = f'✅ User {user_id} meets the criteria for badge {badge_id}.'
        else:
            message = f'❌ User {user_id} does not meet the criteria for badge {badge_id}.'
        await interaction.followup.send(message, ephemeral=True)

    @app_commands.command(
        name='criteria_review', description='Admin-only: issue a badge to qualifying users'
    )
    @app_commands.checks.has_permissions(administrator=True)
    async def criteria_review(self, interaction: Interaction, badge_id: int):
        await interaction.response.defer(thinking=True, ephemeral=True)
        try:
            issued = await asyncio.to_thread(_review, badge_id)
        except BadgeCriteriaError as e:
            await interaction.followup.send(f'⚠️ {e}', ephemeral=True)
            return
        await interaction.followup.send(
            f'Badge {badge_id} issued to {len(issued)} user(s).', ephemeral=True
        )


async def setup(bot: commands.Bot):
    await bot.add_cog(BadgeCriteriaCog(bot))
