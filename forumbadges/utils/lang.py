import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

STRINGS: dict[str, dict[str, str]] = {
    'badges': {
        'allforums': 'All rated forums in this course',
        'bydate': ' completed by',
        'criteria_descr_bydate': ' by <em>{a}</em> ',
        'criteria_descr_refresh': ' (counting only activity since this badge was last awarded)',
        'criterror': 'Current parameters issues',
        'criterror_help': 'This fieldset shows all parameters that were initially added to this badge requirement but are no longer available.',
        'criteria_10': 'Social participation',
        'error:noactivities': 'There are no forums with ratings enabled in this course.',
        'error:noforums': 'There are no forums in this course.',
        'error:nosuchmod': 'Warning: This activity is no longer available.',
        'error:notrated': 'Warning: Ratings are turned off in this forum, so its posts cannot collect likes.',
        'refresh': 'Only count activity since the badge was last awarded',
        'singlepostlikes': 'At least {a} likes on a single post',
        'socialbadgecriteria': 'Social participation',
        'socialbadgecriteria_help': 'Award this badge when a user\'s posts in the selected forum(s) collect enough likes, rated posts or replies.',
        'socialtype': 'Measure',
        'socialvalue': 'Threshold',
        'totallikes': 'At least {a} likes across all posts',
        'totalposts': 'More than {a} liked posts',
        'totalreplies': 'Replies from more than {a} other users',
    },
    'forum': {
        'modulename': 'Forum',
        'forum': 'Forum',
    },
    'form': {
        'err_numeric': 'You must enter a number here.',
    },
}


def get_string(key: str, component: str = 'badges', a: Optional[Any] = None) -> str:
    '''Resolve a UI string, substituting `a` for the `{a}` placeholder.'''
    text = STRINGS.get(component, {}).get(key)
    if text is None:
        logger.warning(f'Missing string [{key},{component}]')
        return f'[[{key}]]'
    if a is not None:
        return text.replace('{a}', str(a))
    return text
