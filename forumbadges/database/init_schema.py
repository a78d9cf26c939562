import logging

from forumbadges.database.db_manager import DBManager

logger = logging.getLogger(__name__)


def init_schema(db: DBManager) -> None:
    '''Create the LMS tables the badge criteria read, if they don't exist.

    Timestamps are unix seconds (BIGINT), matching the host LMS.
    '''
    # --- COURSES ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {course} (
            id BIGSERIAL PRIMARY KEY,
            fullname TEXT NOT NULL DEFAULT '',
            shortname TEXT NOT NULL DEFAULT '',
            enablecompletion SMALLINT NOT NULL DEFAULT 0,
            startdate BIGINT NOT NULL DEFAULT 0
        )
        '''
    )

    # --- MODULE TYPES + COURSE MODULES ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {modules} (
            id BIGSERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            visible SMALLINT NOT NULL DEFAULT 1
        )
        '''
    )
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {course_modules} (
            id BIGSERIAL PRIMARY KEY,
            course BIGINT NOT NULL REFERENCES {course}(id) ON DELETE CASCADE,
            module BIGINT NOT NULL REFERENCES {modules}(id),
            instance BIGINT NOT NULL,
            visible SMALLINT NOT NULL DEFAULT 1,
            timemodified BIGINT NOT NULL DEFAULT 0
        )
        '''
    )

    # --- FORUMS ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {forum} (
            id BIGSERIAL PRIMARY KEY,
            course BIGINT NOT NULL REFERENCES {course}(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            assessed BIGINT NOT NULL DEFAULT 0,
            timemodified BIGINT NOT NULL DEFAULT 0
        )
        '''
    )
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {forum_discussions} (
            id BIGSERIAL PRIMARY KEY,
            course BIGINT NOT NULL,
            forum BIGINT NOT NULL REFERENCES {forum}(id) ON DELETE CASCADE,
            name TEXT NOT NULL DEFAULT '',
            userid BIGINT NOT NULL
        )
        '''
    )
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {forum_posts} (
            id BIGSERIAL PRIMARY KEY,
            discussion BIGINT NOT NULL
                REFERENCES {forum_discussions}(id) ON DELETE CASCADE,
            parent BIGINT NOT NULL DEFAULT 0,
            userid BIGINT NOT NULL,
            created BIGINT NOT NULL DEFAULT 0,
            modified BIGINT NOT NULL DEFAULT 0,
            subject TEXT NOT NULL DEFAULT ''
        )
        '''
    )

    # --- RATINGS ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {rating} (
            id BIGSERIAL PRIMARY KEY,
            component TEXT NOT NULL,
            ratingarea TEXT NOT NULL,
            itemid BIGINT NOT NULL,
            userid BIGINT NOT NULL,
            rating BIGINT NOT NULL DEFAULT 1,
            timecreated BIGINT NOT NULL DEFAULT 0,
            timemodified BIGINT NOT NULL DEFAULT 0
        )
        '''
    )

    # --- USERS ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {user} (
            id BIGSERIAL PRIMARY KEY,
            username TEXT NOT NULL UNIQUE,
            firstname TEXT NOT NULL DEFAULT '',
            lastname TEXT NOT NULL DEFAULT '',
            deleted SMALLINT NOT NULL DEFAULT 0
        )
        '''
    )

    # --- BADGES ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {badge} (
            id BIGSERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            courseid BIGINT NULL REFERENCES {course}(id) ON DELETE SET NULL,
            type SMALLINT NOT NULL DEFAULT 2,
            status SMALLINT NOT NULL DEFAULT 0
        )
        '''
    )
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {badge_criteria} (
            id BIGSERIAL PRIMARY KEY,
            badgeid BIGINT NOT NULL REFERENCES {badge}(id) ON DELETE CASCADE,
            criteriatype BIGINT NOT NULL,
            method SMALLINT NOT NULL DEFAULT 1,
            description TEXT NULL
        )
        '''
    )
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {badge_criteria_param} (
            id BIGSERIAL PRIMARY KEY,
            critid BIGINT NOT NULL REFERENCES {badge_criteria}(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            value TEXT NULL
        )
        '''
    )
    # Refresh mode re-issues badges, so (badgeid, userid) is not unique
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {badge_issued} (
            id BIGSERIAL PRIMARY KEY,
            badgeid BIGINT NOT NULL REFERENCES {badge}(id) ON DELETE CASCADE,
            userid BIGINT NOT NULL,
            dateissued BIGINT NOT NULL
        )
        '''
    )

    # --- MIGRATIONS TABLE ---
    db.execute(
        '''
        CREATE TABLE IF NOT EXISTS {migrations} (
            id BIGSERIAL PRIMARY KEY,
            filename TEXT NOT NULL UNIQUE,
            applied_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
        )
        '''
    )
    logger.debug('Badge criteria schema verified')
