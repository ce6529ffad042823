"""
Personal sustainability tracker: logged water savings, streaks, badges,
milestones and tree sponsorship.

State lives in a ``TrackerStore`` handed to each function, one record per
user id.
"""

import copy
import logging
import math
from datetime import datetime, timezone

from harvest import MAX_AMOUNT

logger = logging.getLogger(__name__)

TREE_INTERVAL_LITERS = 3000
MAX_ACTIVITIES = 100  # newest kept per user

BADGES = [
    {'id': 'eco_hero', 'name': '🌱 Eco Hero', 'requirement': 1000},
    {'id': 'rain_saver', 'name': '💧 Rain Saver', 'requirement': 5000},
    {'id': 'water_warrior', 'name': '⚡ Water Warrior', 'requirement': 15000},
    {'id': 'community_champion', 'name': '🏆 Community Champion', 'requirement': 20000},
    {'id': 'sustainability_star', 'name': '⭐ Sustainability Star', 'requirement': 30000},
]

MILESTONES = [
    {'id': 'first_drop', 'name': 'First Drop', 'description': 'Save your first liter',
     'target': 1, 'measure': 'liters'},
    {'id': 'week_warrior', 'name': '7-Day Warrior', 'description': '7 days of water saving',
     'target': 7, 'measure': 'streak'},
    {'id': 'month_master', 'name': 'Month Master', 'description': '30 days of consistent saving',
     'target': 30, 'measure': 'streak'},
    {'id': 'liter_legend', 'name': 'Liter Legend', 'description': 'Save 10,000 liters',
     'target': 10000, 'measure': 'liters'},
]


class InvalidActivityError(ValueError):
    """Activity amount missing, non-numeric, not finite or out of range."""


def new_record():
    return {
        'lifetime_water_saved': 0,
        'current_streak': 0,
        'last_activity': None,
        'activities': [],
        'trees_sponsored': 0,
        'next_tree_at': TREE_INTERVAL_LITERS,
        'badges_earned_at': {},
        'milestones_achieved_at': {},
    }


class TrackerStore:
    """In-memory tracker records keyed by user id."""

    def __init__(self):
        self._records = {}

    def get(self, user_id):
        """Return a copy of the user's record, or a fresh one for unknown users."""
        record = self._records.get(str(user_id))
        return copy.deepcopy(record) if record is not None else new_record()

    def put(self, user_id, record):
        self._records[str(user_id)] = copy.deepcopy(record)

    def reset(self, user_id):
        self._records.pop(str(user_id), None)


def _progress(value, target):
    return min(value / target * 100, 100) if target > 0 else 100


def _next_streak(record, now):
    if not record['last_activity']:
        return 1
    last_day = datetime.fromisoformat(record['last_activity']).date()
    gap = (now.date() - last_day).days
    if gap == 0:
        return max(record['current_streak'], 1)
    if gap == 1:
        return record['current_streak'] + 1
    return 1


def _update_achievements(record, now):
    timestamp = now.isoformat()
    for badge in BADGES:
        if record['lifetime_water_saved'] >= badge['requirement']:
            # First-earned time is kept even if the rules are re-run later
            record['badges_earned_at'].setdefault(badge['id'], timestamp)
    for milestone in MILESTONES:
        if _milestone_value(record, milestone) >= milestone['target']:
            record['milestones_achieved_at'].setdefault(milestone['id'], timestamp)


def _milestone_value(record, milestone):
    if milestone['measure'] == 'streak':
        return record['current_streak']
    return record['lifetime_water_saved']


def log_activity(store, user_id, liters, activity_type='rainwater_collection', now=None):
    """Record liters saved, update streak, trees, badges and milestones."""
    try:
        liters = float(liters)
    except (TypeError, ValueError, OverflowError):
        raise InvalidActivityError('Invalid amount')
    if not math.isfinite(liters) or not 0 < liters <= MAX_AMOUNT:
        raise InvalidActivityError('Invalid amount')
    liters = int(liters) if liters.is_integer() else round(liters, 2)

    now = now or datetime.now(timezone.utc)
    record = store.get(user_id)

    activity = {'date': now.isoformat(), 'liters': liters, 'type': activity_type}
    record['current_streak'] = _next_streak(record, now)
    record['activities'].insert(0, activity)
    del record['activities'][MAX_ACTIVITIES:]
    record['lifetime_water_saved'] += liters
    record['last_activity'] = now.isoformat()

    record['trees_sponsored'] = int(record['lifetime_water_saved'] // TREE_INTERVAL_LITERS)
    record['next_tree_at'] = (record['trees_sponsored'] + 1) * TREE_INTERVAL_LITERS

    _update_achievements(record, now)
    store.put(user_id, record)

    logger.info(f"Tracker {user_id}: +{liters}L, lifetime {record['lifetime_water_saved']}L")
    return {
        'new_total': record['lifetime_water_saved'],
        'current_streak': record['current_streak'],
        'trees_sponsored': record['trees_sponsored'],
        'activity': activity,
    }


def summary(store, user_id):
    record = store.get(user_id)
    return {
        'lifetime_water_saved': record['lifetime_water_saved'],
        'current_streak': record['current_streak'],
        'last_activity': record['last_activity'],
        'trees_sponsored': record['trees_sponsored'],
        'next_tree_at': record['next_tree_at'],
        'progress_to_next_tree': _progress(record['lifetime_water_saved'], record['next_tree_at']),
    }


def badges(store, user_id):
    record = store.get(user_id)
    lifetime = record['lifetime_water_saved']
    return [
        {
            **badge,
            'earned': lifetime >= badge['requirement'],
            'earned_at': record['badges_earned_at'].get(badge['id']),
            'progress': _progress(lifetime, badge['requirement']),
        }
        for badge in BADGES
    ]


def milestones(store, user_id):
    record = store.get(user_id)
    result = []
    for milestone in MILESTONES:
        value = _milestone_value(record, milestone)
        result.append({
            'id': milestone['id'],
            'name': milestone['name'],
            'description': milestone['description'],
            'target': milestone['target'],
            'achieved': value >= milestone['target'],
            'achieved_at': record['milestones_achieved_at'].get(milestone['id']),
            'progress': _progress(value, milestone['target']),
        })
    return result


def trees(store, user_id):
    record = store.get(user_id)
    return {
        'trees_sponsored': record['trees_sponsored'],
        'next_tree_at': record['next_tree_at'],
        'progress_to_next_tree': _progress(record['lifetime_water_saved'], record['next_tree_at']),
        'liters_to_next_tree': max(record['next_tree_at'] - record['lifetime_water_saved'], 0),
    }


def dashboard(store, user_id, recent=5):
    record = store.get(user_id)
    return {
        'tracker': summary(store, user_id),
        'badges': badges(store, user_id),
        'milestones': milestones(store, user_id),
        'trees': trees(store, user_id),
        'activities': record['activities'][:recent],
    }
