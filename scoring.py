"""
Sustainability scoring, badges and the neighbourhood leaderboard.

Everything here is a pure function of its inputs. Scores and badges are
recomputed on every call rather than tracked incrementally, so the same
inputs always give the same result.
"""

import math
import random
import re
from datetime import datetime, timezone

from harvest import to_amount, CO2_KG_PER_LITER

MONTHS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
          'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

OLYMPIC_POOL_LITERS = 2500000
HOUSEHOLD_LITERS_PER_YEAR = 150000
TREE_LITERS_PER_YEAR = 1000


def _ratio(numerator, denominator):
    """numerator / denominator, or 0 when the result would not be a finite number."""
    if denominator <= 0:
        return 0.0
    value = numerator / denominator
    return value if math.isfinite(value) else 0.0


def sustainability_score(roof_area, water_demand, average_rainfall, annual_harvest, water_saved):
    """
    Combine four capped components into a 0-100 score.

    Harvest efficiency is worth 40 points; roof scale, demand coverage and
    environmental impact are worth 20 each.
    """
    roof_area = to_amount(roof_area)
    annual_harvest = to_amount(annual_harvest)

    harvest_efficiency = min(40, 40 * _ratio(annual_harvest, roof_area * to_amount(average_rainfall) * 0.8))
    roof_scale = min(20, 20 * roof_area / 1000)
    demand_coverage = min(20, 20 * _ratio(annual_harvest, to_amount(water_demand) * 365))
    environmental = min(20, 20 * to_amount(water_saved) / 10000)

    total = harvest_efficiency + roof_scale + demand_coverage + environmental
    return round(max(0, min(100, total)))


# --- Achievements ---

ACHIEVEMENTS = [
    {'id': 1, 'title': 'Water Warrior', 'description': 'Saved over 10,000 liters', 'icon': '💧'},
    {'id': 2, 'title': 'Top Saver', 'description': 'High sustainability score', 'icon': '🏆'},
    {'id': 3, 'title': 'Consistency', 'description': 'Consistent water saving', 'icon': '👑'},
    {'id': 4, 'title': 'Community Leader', 'description': 'Leading by example with large system', 'icon': '🌟'},
    {'id': 5, 'title': 'Monsoon Master', 'description': 'Maximized collection during monsoon', 'icon': '🌧️'},
]


def evaluate_achievements(total_water_saved, score, roof_area, monthly_records=None,
                          aggregate=False, now=None):
    """
    Evaluate the five badges against current totals.

    With ``aggregate`` set (community views), Consistency needs six months
    with recorded savings and Community Leader needs a 2000 m² roof.
    """
    total_water_saved = to_amount(total_water_saved)
    score = to_amount(score)
    roof_area = to_amount(roof_area)
    now = now or datetime.now(timezone.utc)

    if aggregate:
        recorded_months = sum(1 for record in monthly_records or [] if record.get('water_saved', 0) > 0)
        consistent = recorded_months >= 6
        leader = roof_area >= 2000
    else:
        consistent = roof_area >= 100
        leader = roof_area >= 200

    earned = {
        1: total_water_saved >= 10000,
        2: score >= 75,
        3: consistent,
        4: leader,
        5: total_water_saved >= 15000,
    }

    return [
        {
            **badge,
            'earned': earned[badge['id']],
            'earned_date': now.isoformat() if earned[badge['id']] else None,
        }
        for badge in ACHIEVEMENTS
    ]


# --- Monthly breakdown ---

class SeededJitter:
    """
    Display-only noise for monthly charts.

    Multiplies each value by a factor drawn from [low, high) using its own
    seeded generator, so a given seed always produces the same series.
    """

    def __init__(self, seed=0, low=0.8, high=1.2):
        self.low = low
        self.high = high
        self._random = random.Random(seed)

    def __call__(self, value):
        return value * self._random.uniform(self.low, self.high)


def monthly_breakdown(assessment, jitter=None):
    """Monthly water saved and rainfall for one stored assessment."""
    harvest = assessment.get('harvest') or {}
    monthly_harvest = harvest.get('monthly') or []
    monthly_rainfall = assessment.get('monthly_rainfall') or []
    annual = to_amount(harvest.get('annual'))
    average_rainfall = to_amount(assessment.get('average_rainfall'))

    breakdown = []
    for i, month in enumerate(MONTHS):
        if len(monthly_harvest) == 12:
            water_saved = to_amount(monthly_harvest[i])
        else:
            water_saved = annual / 12
        if len(monthly_rainfall) == 12:
            rainfall = to_amount(monthly_rainfall[i])
        else:
            rainfall = average_rainfall / 12

        if jitter is not None:
            water_saved = jitter(water_saved)
            rainfall = jitter(rainfall)

        breakdown.append({
            'month': month,
            'water_saved': round(water_saved),
            'rainfall': round(rainfall),
        })
    return breakdown


# --- Leaderboard ---

def score_assessment(assessment):
    harvest = assessment.get('harvest') or {}
    environmental = assessment.get('environmental') or {}
    return sustainability_score(
        assessment.get('roof_area'),
        assessment.get('water_demand'),
        assessment.get('average_rainfall'),
        harvest.get('annual'),
        environmental.get('water_saved', 0),
    )


def community_equivalents(total_liters):
    total_liters = to_amount(total_liters)
    return {
        'olympic_pools': math.floor(total_liters / OLYMPIC_POOL_LITERS),
        'households': math.floor(total_liters / HOUSEHOLD_LITERS_PER_YEAR),
        'trees': math.floor(total_liters / TREE_LITERS_PER_YEAR),
        'carbon_offset_kg': math.floor(total_liters * CO2_KG_PER_LITER),
    }


def _is_requester(assessment, user_id):
    if user_id is None or user_id == '':
        return False
    user_id = str(user_id)
    return user_id in (
        str(assessment.get('user_id')),
        str(assessment.get('user_email')),
        str(assessment.get('id')),
    )


def empty_leaderboard():
    return {
        'months': list(MONTHS),
        'neighbors': [],
        'community_data': [0] * 12,
        'individual_data': [0] * 12,
        'rainfall_data': [0] * 12,
        'total_community_water': 0,
        'total_individual_water': 0,
        'user_score': 0,
        'user_rank': None,
        'user_found': False,
        'total_participants': 0,
        'equivalents': community_equivalents(0),
        'achievements': [],
        'placeholder': False,
    }


# Demo community shown to empty neighbourhoods when explicitly requested
PLACEHOLDER_NEIGHBORS = [
    ('Sarah Johnson', 95, 15000),
    ('Mike Chen', 88, 12500),
    ('You', 82, 11200),
    ('Emma Davis', 78, 9800),
    ('Carlos Rodriguez', 75, 9200),
    ('Lisa Wang', 72, 8500),
    ('David Kim', 68, 7800),
    ('Anna Smith', 65, 7200),
]
PLACEHOLDER_COMMUNITY = [45000, 52000, 48000, 38000, 25000, 65000, 78000, 72000, 58000, 42000, 35000, 40000]
PLACEHOLDER_INDIVIDUAL = [1200, 1400, 1300, 1000, 650, 1800, 2100, 1950, 1600, 1150, 950, 1100]
PLACEHOLDER_RAINFALL = [25, 30, 28, 20, 12, 45, 55, 52, 38, 25, 18, 22]


def placeholder_leaderboard(now=None):
    total_community = sum(PLACEHOLDER_COMMUNITY)
    total_individual = sum(PLACEHOLDER_INDIVIDUAL)
    neighbors = [
        {'id': rank, 'name': name, 'score': score, 'water_saved': water_saved,
         'rank': rank, 'is_user': name == 'You'}
        for rank, (name, score, water_saved) in enumerate(PLACEHOLDER_NEIGHBORS, 1)
    ]
    return {
        'months': list(MONTHS),
        'neighbors': neighbors,
        'community_data': list(PLACEHOLDER_COMMUNITY),
        'individual_data': list(PLACEHOLDER_INDIVIDUAL),
        'rainfall_data': list(PLACEHOLDER_RAINFALL),
        'total_community_water': total_community,
        'total_individual_water': total_individual,
        'user_score': 82,
        'user_rank': 3,
        'user_found': True,
        'total_participants': len(neighbors),
        'equivalents': community_equivalents(total_community),
        'achievements': evaluate_achievements(total_individual, 82, 0, now=now),
        'placeholder': True,
    }


def aggregate_leaderboard(assessments, requesting_user_id=None, now=None,
                          placeholder=True, jitter=None):
    """
    Rank a neighbourhood and total its monthly harvest.

    Args:
        assessments: Stored assessment dicts, most recent first
        requesting_user_id: User id, email or assessment id of the viewer
        now: Timestamp used for earned badges
        placeholder: With no assessments, return the demo community;
            pass False for the explicit empty result
        jitter: Optional display decorator for monthly figures

    Returns:
        dict: ranked neighbours, the viewer's rank and score, monthly
        community totals and community equivalents
    """
    if not assessments:
        return placeholder_leaderboard(now) if placeholder else empty_leaderboard()

    entries = []
    for position, assessment in enumerate(assessments):
        score = score_assessment(assessment)
        monthly = monthly_breakdown(assessment, jitter)
        total_saved = to_amount((assessment.get('harvest') or {}).get('annual'))
        entries.append({
            'position': position,
            'assessment': assessment,
            'score': score,
            'monthly': monthly,
            'total_saved': total_saved,
        })

    # sorted() is stable, ties keep the store's most-recent-first order
    ranked = sorted(entries, key=lambda entry: entry['score'], reverse=True)
    for rank, entry in enumerate(ranked, 1):
        entry['rank'] = rank

    user_entry = next((e for e in entries if _is_requester(e['assessment'], requesting_user_id)), None)
    user_found = user_entry is not None
    if user_entry is None:
        user_entry = entries[0]

    neighbors = []
    for entry in ranked:
        assessment = entry['assessment']
        name = assessment.get('user_name') or 'Anonymous User'
        is_user = user_found and entry is user_entry
        neighbors.append({
            'id': assessment.get('id'),
            'name': f'You ({name})' if is_user else name,
            'score': entry['score'],
            'water_saved': round(entry['total_saved']),
            'rank': entry['rank'],
            'is_user': is_user,
        })

    community_data = [0] * 12
    for entry in entries:
        for i, record in enumerate(entry['monthly']):
            community_data[i] += record['water_saved']

    individual_data = [record['water_saved'] for record in user_entry['monthly']]
    total_community = sum(community_data)

    return {
        'months': list(MONTHS),
        'neighbors': neighbors,
        'community_data': community_data,
        'individual_data': individual_data,
        'rainfall_data': [record['rainfall'] for record in user_entry['monthly']],
        'total_community_water': total_community,
        'total_individual_water': sum(individual_data),
        'user_score': user_entry['score'],
        'user_rank': user_entry['rank'],
        'user_found': user_found,
        'total_participants': len(entries),
        'equivalents': community_equivalents(total_community),
        'achievements': evaluate_achievements(
            user_entry['total_saved'],
            user_entry['score'],
            user_entry['assessment'].get('roof_area'),
            monthly_records=user_entry['monthly'],
            aggregate=True,
            now=now,
        ),
        'placeholder': False,
    }


# --- Neighbourhoods ---

def neighborhood_id(address, default='default'):
    """
    Derive a grouping key from free-text address.

    "Anna Nagar, Chennai, Tamil Nadu, India" -> "anna-nagar-chennai-tamil-nadu"
    """
    if not isinstance(address, str):
        return default
    parts = [part.strip() for part in address.split(',') if part.strip()]
    if parts and parts[-1].lower() == 'india':
        parts = parts[:-1]
    slug = re.sub(r'[^a-z0-9]+', '-', ' '.join(parts[:3]).lower()).strip('-')
    return slug or default
