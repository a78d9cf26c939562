import logging
import sys


def setup_logging(level: int | str = logging.INFO) -> None:
    '''Configure root logger for the entire codebase.'''
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # psycopg pool chatter is noisy at INFO
    logging.getLogger('psycopg.pool').setLevel(max(level, logging.WARNING))
