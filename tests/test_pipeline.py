from datetime import datetime, timezone

import pytest

from pipeline import (
    AssessmentStore,
    InvalidAssessmentError,
    compute_assessment,
    compute_community_view,
    parse_assessment_input,
    share_messages,
)

NOW = datetime(2024, 7, 1, tzinfo=timezone.utc)

CHENNAI = {
    'location': {'latitude': 13.0827, 'longitude': 80.2707,
                 'address': 'Anna Nagar, Chennai, Tamil Nadu, India'},
    'roofArea': 120,
    'roofType': 'concrete',
    'waterDemand': 400,
    'userName': 'Priya',
}


class MemoryStore(AssessmentStore):
    def __init__(self, records=None):
        self.records = records or {}

    def find_by_neighborhood(self, neighborhood_id):
        return list(self.records.get(neighborhood_id, []))


class BrokenStore(AssessmentStore):
    def find_by_neighborhood(self, neighborhood_id):
        raise ConnectionError('database unavailable')


@pytest.mark.parametrize('payload', [
    None,
    [],
    {},
    {'location': 'Chennai'},
    {'location': {'address': 'somewhere'}},
    {'location': {'latitude': 'north', 'longitude': 80}},
    {'location': {'latitude': 95, 'longitude': 80}},
])
def test_unusable_submissions_are_rejected(payload):
    with pytest.raises(InvalidAssessmentError):
        parse_assessment_input(payload)


def test_parse_accepts_camel_case_and_coerces_numbers():
    parsed = parse_assessment_input({
        'location': {'latitude': '13.08', 'longitude': '80.27'},
        'roofArea': 'lots',
        'roofType': 'Thatch',
        'waterDemand': '250',
    })

    assert parsed['location']['latitude'] == 13.08
    assert parsed['roof_area'] == 0.0
    assert parsed['roof_type'] == 'other'
    assert parsed['water_demand'] == 250.0


def test_parse_accepts_geojson_coordinates():
    parsed = parse_assessment_input({'location': {'coordinates': [80.27, 13.08]}, 'roof_area': 50})

    assert parsed['location']['latitude'] == 13.08
    assert parsed['location']['longitude'] == 80.27
    assert parsed['roof_area'] == 50.0


def test_compute_assessment_for_chennai():
    result = compute_assessment(parse_assessment_input(CHENNAI), now=NOW)

    assert result['rainfall']['source'] == 'city_database'
    assert result['confidence'] == 0.9
    assert result['location']['coordinates'] == [80.2707, 13.0827]
    assert result['harvest']['annual'] == sum(result['harvest']['monthly'])
    assert result['system']['size'] == 'medium'
    assert result['environmental']['water_saved'] == result['harvest']['annual']
    assert 0 <= result['score'] <= 100
    assert len(result['achievements']) == 5
    assert result['neighborhood_id'] == 'anna-nagar-chennai-tamil-nadu'


def test_compute_assessment_is_deterministic():
    assessment_input = parse_assessment_input(CHENNAI)

    assert compute_assessment(assessment_input, now=NOW) == compute_assessment(assessment_input, now=NOW)


def test_compute_assessment_with_zero_roof():
    result = compute_assessment(parse_assessment_input({'location': {'latitude': 0, 'longitude': 0}}), now=NOW)

    assert result['harvest']['annual'] == 0
    assert result['costs']['payback_years'] is None
    assert result['system']['demand_coverage'] == 0
    assert result['neighborhood_id'] == 'default'


def test_community_view_from_store():
    result = compute_assessment(parse_assessment_input(CHENNAI), now=NOW)
    record = {
        'id': 1,
        'user_id': 'u-1',
        'user_name': 'Priya',
        'roof_area': 120,
        'water_demand': 400,
        'average_rainfall': result['rainfall']['annual'],
        'monthly_rainfall': result['rainfall']['monthly'],
        'harvest': result['harvest'],
        'environmental': result['environmental'],
    }
    store = MemoryStore({'anna-nagar': [record]})

    view = compute_community_view(store, 'anna-nagar', 'u-1', now=NOW)

    assert view['neighborhood_id'] == 'anna-nagar'
    assert view['user_rank'] == 1
    assert view['user_score'] == result['score']
    assert view['community_data'] == result['harvest']['monthly']


def test_store_errors_propagate():
    with pytest.raises(ConnectionError):
        compute_community_view(BrokenStore(), 'anna-nagar')


def test_share_messages_mention_rank_and_score():
    view = compute_community_view(MemoryStore(), 'nowhere', now=NOW)

    messages = share_messages(view)

    assert set(messages) == {'whatsapp', 'twitter', 'linkedin'}
    assert '#3' in messages['whatsapp']
    assert '82/100' in messages['twitter']


def test_share_messages_for_empty_neighbourhood():
    messages = share_messages(compute_community_view(MemoryStore(), 'nowhere', placeholder=False, now=NOW))

    assert 'Saved 0 liters' in messages['whatsapp']
