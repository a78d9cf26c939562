from types import SimpleNamespace

import pytest

from forumbadges.criteria.engine import BadgeReviewEngine
from forumbadges.criteria.loader import load_criteria
from forumbadges.criteria.query import SocialType
from forumbadges.criteria.social import SocialCriterion, SocialParams
from forumbadges.models.badge_criteria import BadgeCriteria, BadgeCriteriaParam
from forumbadges.models.badge_issued import BadgeIssued
from forumbadges.utils.constants import CRITERIA_TYPE_SOCIAL


@pytest.fixture()
def forum_badge(lms, sqlite_db):
    course = lms.course(startdate=0)
    cm, forum = lms.forum(course, 'Help desk')
    disc = lms.discussion(course, forum)
    for uid in (1, 2, 3):
        lms.user(uid)
    helpful = lms.post(disc, 1, 100)
    lms.rate(helpful, 2, 110)
    lms.rate(helpful, 3, 120)
    meh = lms.post(disc, 2, 130)
    lms.rate(meh, 1, 140)
    lms.post(disc, 3, 150)

    badge = lms.badge(course)
    crit = BadgeCriteria.create(
        {'badgeid': badge, 'criteriatype': CRITERIA_TYPE_SOCIAL, 'method': 1},
        db=sqlite_db,
    )
    params = SocialParams(
        forum=cm, allforums=False, socialtype=SocialType.SINGLE_POST_LIKES, socialvalue=2
    )
    BadgeCriteriaParam.replace(crit['id'], params.to_stored(), db=sqlite_db)
    return SimpleNamespace(badge=badge, crit=crit['id'], cm=cm, disc=disc)


def test_load_criteria_builds_registered_types(sqlite_db, forum_badge):
    badge, crit_id = forum_badge.badge, forum_badge.crit
    BadgeCriteria.create({'badgeid': badge, 'criteriatype': 999}, db=sqlite_db)

    criteria = load_criteria(badge, sqlite_db)

    assert len(criteria) == 1
    assert isinstance(criteria[0], SocialCriterion)
    assert criteria[0].id == crit_id
    assert criteria[0].params.socialvalue == 2


def test_review_badge_issues_to_qualifying_users(sqlite_db, forum_badge):
    badge = forum_badge.badge

    issued = BadgeReviewEngine(sqlite_db).review_badge(badge, now=1000)

    assert issued == [1]
    assert BadgeIssued.last_issued(badge, 1, db=sqlite_db) == 1000
    assert BadgeIssued.last_issued(badge, 2, db=sqlite_db) is None


def test_review_badge_skips_existing_holders(sqlite_db, forum_badge):
    badge = forum_badge.badge
    engine = BadgeReviewEngine(sqlite_db)
    assert engine.review_badge(badge, now=1000) == [1]
    assert engine.review_badge(badge, now=2000) == []


def test_refresh_reissues_only_on_new_activity(lms, sqlite_db, forum_badge):
    badge, disc = forum_badge.badge, forum_badge.disc
    params = SocialParams(
        forum=forum_badge.cm,
        allforums=False,
        socialtype=SocialType.SINGLE_POST_LIKES,
        socialvalue=2,
        refresh=True,
    )
    BadgeCriteriaParam.replace(forum_badge.crit, params.to_stored(), db=sqlite_db)
    engine = BadgeReviewEngine(sqlite_db)
    assert engine.review_badge(badge, now=1000) == [1]
    assert engine.review_badge(badge, now=2000) == []

    fresh = lms.post(disc, 1, 3000)
    lms.rate(fresh, 2, 3100)
    lms.rate(fresh, 3, 3200)
    assert engine.review_badge(badge, now=4000) == [1]
    assert BadgeIssued.last_issued(badge, 1, db=sqlite_db) == 4000


def test_check_user(sqlite_db, forum_badge, lms):
    badge = forum_badge.badge
    engine = BadgeReviewEngine(sqlite_db)
    assert engine.check_user(badge, 1) is True
    assert engine.check_user(badge, 2) is False
    assert engine.check_user(lms.badge(None), 1) is None
