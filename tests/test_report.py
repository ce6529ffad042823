from datetime import datetime, timezone

from pipeline import compute_assessment, parse_assessment_input
from report import build_report


def stored_assessment():
    assessment_input = parse_assessment_input({
        'location': {'latitude': 19.076, 'longitude': 72.8777, 'address': 'Bandra West, Mumbai, Maharashtra'},
        'roof_area': 80,
        'roof_type': 'metal',
        'water_demand': 350,
        'user_name': 'Rahul',
    })
    result = compute_assessment(assessment_input, now=datetime(2024, 7, 1, tzinfo=timezone.utc))
    return {
        'user_name': assessment_input['user_name'],
        'location': assessment_input['location'],
        'roof_area': assessment_input['roof_area'],
        'roof_type': assessment_input['roof_type'],
        'water_demand': assessment_input['water_demand'],
        'climate_zone': result['location']['climate_zone'],
        'average_rainfall': result['rainfall']['annual'],
        'soil_type': result['location']['soil_type'],
        'neighborhood_id': result['neighborhood_id'],
        'harvest': result['harvest'],
        'system': result['system'],
        'costs': result['costs'],
        'environmental': result['environmental'],
        'recharge': result['recharge'],
        'sustainability_score': result['score'],
        'achievements': result['achievements'],
    }


def test_report_is_a_pdf():
    pdf = build_report(stored_assessment(), generated_at=datetime(2024, 7, 1))

    assert isinstance(pdf, bytes)
    assert pdf.startswith(b'%PDF')


def test_report_tolerates_sparse_assessment():
    pdf = build_report({'user_name': 'Zoë ☔', 'costs': {'payback_years': None}})

    assert pdf.startswith(b'%PDF')
