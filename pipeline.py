"""
Assessment pipeline.

``compute_assessment`` runs the whole engine for one submission;
``compute_community_view`` ranks every stored assessment of a neighbourhood.
HTTP handlers and the PDF report only go through these functions.
"""

import logging

import config
from climate import resolve_climate
from harvest import compute_harvest, estimate_environmental_impact, to_amount
from recommendations import recommend_system, estimate_costs, size_recharge_structures
from scoring import (
    aggregate_leaderboard,
    evaluate_achievements,
    neighborhood_id,
    sustainability_score,
)

logger = logging.getLogger(__name__)

ROOF_TYPES = ('concrete', 'metal', 'tiled', 'other')


class InvalidAssessmentError(ValueError):
    """The submission is structurally unusable (no body, no coordinates)."""


class AssessmentStore:
    """
    Storage contract used by the community views.

    ``find_by_neighborhood`` returns assessment dicts, most recent first.
    Errors raised by an implementation are not caught here.
    """

    def find_by_neighborhood(self, neighborhood_id):
        raise NotImplementedError

    def save(self, record):
        raise NotImplementedError


def parse_assessment_input(payload):
    """
    Normalize a submission into an AssessmentInput dict.

    Coordinates may come as ``latitude``/``longitude`` or as a GeoJSON style
    ``coordinates: [lon, lat]`` pair. Numeric fields are coerced, never
    rejected; only a missing body or missing coordinates is an error.
    """
    if not isinstance(payload, dict):
        raise InvalidAssessmentError('No JSON data provided')

    location = payload.get('location')
    if not isinstance(location, dict):
        raise InvalidAssessmentError('location is required')

    if location.get('latitude') is not None and location.get('longitude') is not None:
        lat, lon = location['latitude'], location['longitude']
    elif isinstance(location.get('coordinates'), (list, tuple)) and len(location['coordinates']) == 2:
        lon, lat = location['coordinates']
    else:
        raise InvalidAssessmentError('location coordinates are required')

    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError, OverflowError):
        raise InvalidAssessmentError('location coordinates must be numeric')
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise InvalidAssessmentError('location coordinates are out of range')

    roof_type = str(payload.get('roof_type') or payload.get('roofType') or 'other').lower()
    if roof_type not in ROOF_TYPES:
        roof_type = 'other'

    return {
        'location': {
            'latitude': lat,
            'longitude': lon,
            'address': location.get('address') or '',
            'city': location.get('city') or '',
            'state': location.get('state') or '',
            'country': location.get('country') or '',
        },
        'roof_area': to_amount(payload.get('roof_area', payload.get('roofArea'))),
        'roof_type': roof_type,
        'water_demand': to_amount(payload.get('water_demand', payload.get('waterDemand'))),
        'user_name': payload.get('user_name') or payload.get('userName'),
        'user_email': payload.get('user_email') or payload.get('userEmail'),
        'user_id': payload.get('user_id') or payload.get('user'),
    }


def _address_key(location):
    if location.get('address'):
        return location['address']
    return ', '.join(part for part in (location.get('city'), location.get('state')) if part)


def compute_assessment(assessment_input, climate_source=None, now=None):
    """
    Run the full engine for one submission.

    Args:
        assessment_input: dict from ``parse_assessment_input``
        climate_source: Optional remote climatology source
        now: Evaluation timestamp for earned badges

    Returns:
        dict: location, rainfall, harvest, system, costs, environmental,
        recharge, score, achievements, confidence and neighborhood_id
    """
    location = assessment_input['location']
    roof_area = to_amount(assessment_input.get('roof_area'))
    roof_type = assessment_input.get('roof_type')
    water_demand = to_amount(assessment_input.get('water_demand'))

    climate = resolve_climate(location['latitude'], location['longitude'], source=climate_source)

    harvest = compute_harvest(roof_area, roof_type, climate['monthly_rainfall_mm'])
    system = recommend_system(harvest['annual'], water_demand, roof_area)
    costs = estimate_costs(system['size'], roof_area, harvest['annual'])
    environmental = estimate_environmental_impact(harvest['annual'])
    recharge = size_recharge_structures(roof_area, climate['soil_percolation_rate'], harvest['annual'])

    score = sustainability_score(
        roof_area,
        water_demand,
        climate['annual_rainfall_mm'],
        harvest['annual'],
        environmental['water_saved'],
    )
    achievements = evaluate_achievements(environmental['water_saved'], score, roof_area, now=now)

    return {
        'location': {
            **location,
            'coordinates': [location['longitude'], location['latitude']],
            'climate_zone': climate['zone'],
            'location_label': climate['location_label'],
            'soil_type': climate['soil_type'],
        },
        'rainfall': {
            'annual': climate['annual_rainfall_mm'],
            'monthly': climate['monthly_rainfall_mm'],
            'source': climate['source'],
            'current': climate['current'],
        },
        'harvest': harvest,
        'system': system,
        'costs': costs,
        'environmental': environmental,
        'recharge': recharge,
        'score': score,
        'achievements': achievements,
        'confidence': climate['confidence'],
        'neighborhood_id': neighborhood_id(_address_key(location), config.DEFAULT_NEIGHBORHOOD),
    }


def compute_community_view(store, neighborhood, user_id=None, placeholder=True, now=None):
    """Leaderboard and community totals for one neighbourhood."""
    assessments = store.find_by_neighborhood(neighborhood)
    logger.info(f"Community view for '{neighborhood}': {len(assessments)} assessments")
    view = aggregate_leaderboard(assessments, user_id, now=now, placeholder=placeholder)
    view['neighborhood_id'] = neighborhood
    return view


def share_messages(view):
    """Pre-written social posts from a community view."""
    water_saved = f"{view['total_individual_water']:,}"
    rank = view['user_rank'] or 1
    score = view['user_score']
    return {
        'whatsapp': (
            f"🌧️ I'm making a difference with rainwater harvesting! 💧\n\n"
            f"✅ Saved {water_saved} liters this year\n"
            f"🏆 Ranked #{rank} in my neighborhood\n"
            f"🌱 Score: {score}/100\n\n"
            f"Join me in conserving water for a sustainable future! 🌍"
        ),
        'twitter': (
            f"🌧️ Proud to share my rainwater harvesting impact! 💧\n\n"
            f"✅ {water_saved}L saved this year\n"
            f"🏆 #{rank} in neighborhood\n"
            f"🌱 {score}/100 sustainability score\n\n"
            f"Every drop counts! Join the movement 🌍"
        ),
        'linkedin': (
            f"I'm excited to share my progress in sustainable water management through "
            f"rooftop rainwater harvesting!\n\n"
            f"🌧️ This year's impact:\n"
            f"• {water_saved} liters of water conserved\n"
            f"• Ranked #{rank} among neighbors\n"
            f"• Sustainability score: {score}/100\n\n"
            f"Small actions lead to big environmental changes. Consider implementing "
            f"rainwater harvesting in your community!"
        ),
    }
