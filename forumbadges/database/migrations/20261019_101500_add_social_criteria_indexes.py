from forumbadges.database.db_manager import DBManager


def up(db_manager: DBManager):
    # Reply counting walks posts by parent
    db_manager.execute(
        'CREATE INDEX IF NOT EXISTS {forum_posts}_parent_idx ON {forum_posts} (parent)'
    )
    db_manager.execute(
        'CREATE INDEX IF NOT EXISTS {forum_posts}_userid_idx '
        'ON {forum_posts} (userid, discussion)'
    )
    db_manager.execute(
        'CREATE INDEX IF NOT EXISTS {rating}_item_idx '
        'ON {rating} (component, ratingarea, itemid)'
    )
    db_manager.execute(
        'CREATE INDEX IF NOT EXISTS {badge_issued}_user_idx '
        'ON {badge_issued} (badgeid, userid)'
    )


def down(db_manager: DBManager):
    for index in (
        '{forum_posts}_parent_idx',
        '{forum_posts}_userid_idx',
        '{rating}_item_idx',
        '{badge_issued}_user_idx',
    ):
        db_manager.execute(f'DROP INDEX IF EXISTS {index}')
