import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _find_project_root(start: Optional[Path] = None) -> Path:
    start = start or Path(__file__).resolve()
    current = start if start.is_dir() else start.parent
    markers = {'pyproject.toml', '.git'}
    while True:
        if any((current / m).exists() for m in markers):
            return current
        if current.parent == current:
            return start if start.is_dir() else start.parent
        current = current.parent


def _resolve_env_filename() -> str:
    env_file = os.getenv('ENV_FILE')
    if env_file:
        return env_file

    env = (os.getenv('ENV') or os.getenv('PYTHON_ENV') or 'local').lower()
    if env in {'prod', 'production'}:
        return '.env.prod'
    return '.env.local'


def load_env(override: bool = False) -> Path:
    root = _find_project_root()
    env_path = Path(_resolve_env_filename())
    if not env_path.is_absolute():
        env_path = root / env_path

    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=override)
    else:
        fallback = root / '.env'
        if fallback.exists():
            load_dotenv(dotenv_path=fallback, override=override)

    return env_path


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str]
    table_prefix: str
    site_course_id: int
    log_level: str
    timezone: str
    discord_token: Optional[str]
    guild_id: Optional[int]


def get_settings() -> Settings:
    '''Read settings from the (already loaded) environment.'''
    guild_id = os.getenv('GUILD_ID')
    return Settings(
        database_url=os.getenv('DATABASE_URL'),
        table_prefix=os.getenv('DB_TABLE_PREFIX', 'mdl_'),
        site_course_id=int(os.getenv('SITE_COURSE_ID', '1')),
        log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        timezone=os.getenv('LMS_TIMEZONE', 'UTC'),
        discord_token=os.getenv('DISCORD_TOKEN'),
        guild_id=int(guild_id) if guild_id else None,
    )
