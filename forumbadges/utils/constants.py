# Badge criteria type ids (stored in badge_criteria.criteriatype)
CRITERIA_TYPE_SOCIAL = 10

FORUM_MODNAME = 'forum'
RATING_COMPONENT = 'mod_forum'
RATING_AREA = 'post'

# forum.assessed values with ratings enabled: count of ratings, sum of ratings
RATED_FORUM_MODES = (2, 5)

DATE_FORMAT = 'D MMMM YYYY'
