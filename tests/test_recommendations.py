import pytest

from harvest import MAX_AMOUNT
from recommendations import estimate_costs, recommend_system, size_recharge_structures


def test_large_harvest_selects_large_system():
    system = recommend_system(150001, 100, 50)

    assert system['size'] == 'large'
    assert system['tank_capacity'] == 5000


def test_large_roof_alone_selects_large_system():
    assert recommend_system(1000, 100, 250)['size'] == 'large'


@pytest.mark.parametrize('harvest, roof_area, size', [
    (75001, 50, 'medium'),
    (1000, 120, 'medium'),
    (75000, 100, 'small'),
])
def test_size_tiers(harvest, roof_area, size):
    assert recommend_system(harvest, 100, roof_area)['size'] == size


def test_zero_demand_gives_zero_coverage():
    system = recommend_system(50000, 0, 80)

    assert system['demand_coverage'] == 0
    assert system['recommended'] is False


def test_coverage_threshold():
    # 40000 L against 365 x 300 L/day is 36.5%
    assert recommend_system(40000, 300, 80)['recommended'] is True
    assert recommend_system(10000, 300, 80)['recommended'] is False


def test_costs_with_no_harvest():
    costs = estimate_costs('small', 50, 0)

    assert costs['equipment'] == 32500
    assert costs['installation'] == 9750
    assert costs['total'] == 42250
    assert costs['annual_savings'] == 0
    assert costs['payback_years'] is None
    assert costs['roi'] == 0


def test_net_cost_is_total_minus_subsidy():
    for size, area, harvest in [('small', 50, 0), ('medium', 120, 100000), ('large', 400, 300000)]:
        costs = estimate_costs(size, area, harvest)
        assert costs['net_cost'] == costs['total'] - costs['subsidy']


def test_medium_costs_and_payback():
    costs = estimate_costs('medium', 120, 100000)

    assert costs['total'] == 109200
    assert costs['subsidy'] == 27300
    assert costs['annual_savings'] == 1500
    assert costs['payback_years'] == pytest.approx(72.8)
    assert costs['roi'] == 2


def test_unknown_size_costs_as_small():
    assert estimate_costs('huge', 50, 0)['equipment'] == 32500


def test_small_roof_gets_recharge_pit():
    recharge = size_recharge_structures(50, 0.8, 40000)

    assert [s['type'] for s in recharge['structures']] == ['recharge_pit']
    assert recharge['structures'][0]['quantity'] == 1
    assert recharge['total_cost'] == 15000
    assert recharge['soil_suitability'] == 'Good'
    assert recharge['recommendation'] == 'Excellent for groundwater recharge'
    assert recharge['recharge_capacity'] == 32000


def test_large_roof_gets_well_and_pits():
    recharge = size_recharge_structures(150, 0.4, 100000)

    assert [s['type'] for s in recharge['structures']] == ['recharge_well', 'recharge_pit']
    assert recharge['total_cost'] == 60000
    assert recharge['soil_suitability'] == 'Moderate'


def test_large_roof_with_no_harvest_gets_well_only():
    recharge = size_recharge_structures(150, 0.4, 0)

    assert [s['type'] for s in recharge['structures']] == ['recharge_well']
    assert recharge['total_cost'] == 45000


def test_huge_inputs_stay_finite():
    costs = estimate_costs('large', 1e307, 1e308)
    system = recommend_system(1e308, 1e-300, 1e308)
    recharge = size_recharge_structures(1e308, 0.8, 1e308)

    assert costs['equipment'] == round(120000 + MAX_AMOUNT * 250)
    assert costs['net_cost'] == costs['total'] - costs['subsidy']
    assert costs['payback_years'] is not None
    assert system['size'] == 'large'
    assert isinstance(system['demand_coverage'], int)
    assert recharge['total_cost'] > 0
