import re
from html import unescape

import discord

_TAG_RE = re.compile(r'<[^>]+>')


def html_to_text(fragment: str) -> str:
    '''Flatten a criteria description for Discord.'''
    text = fragment.replace('<li>', '\n• ').replace('</p>', '\n').replace('<p>', '\n')
    text = _TAG_RE.sub('', text)
    return re.sub(r'\n{2,}', '\n', unescape(text)).strip()


def criteria_embed(badge_name: str, details: list[str]) -> discord.Embed:
    embed = discord.Embed(
        title=f'Criteria for {badge_name}', color=discord.Color.gold()
    )
    if not details:
        embed.description = 'This badge has no criteria yet.'
        return embed

    for idx, detail in enumerate(details, start=1):
        embed.add_field(
            name=f'Criterion {idx}', value=html_to_text(detail)[:1024], inline=False
        )
    return embed
