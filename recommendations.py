import math

from harvest import to_amount

# Cost estimation per system type (INR)
SYSTEM_COSTS = {
    'small': {
        'base': 25000,
        'per_sq_m': 150,
        'description': 'Compact system suitable for residential use'
    },
    'medium': {
        'base': 60000,
        'per_sq_m': 200,
        'description': 'Medium system with enhanced filtration'
    },
    'large': {
        'base': 120000,
        'per_sq_m': 250,
        'description': 'Large-scale system with multiple collection points'
    }
}

TANK_CAPACITY = {'small': 1500, 'medium': 3000, 'large': 5000}

INSTALLATION_FRACTION = 0.30
WATER_COST_PER_LITER = 0.015  # INR per liter (average)
SUBSIDY_FRACTION = 0.25  # average state subsidy

RECHARGE_PIT_COST = 15000
RECHARGE_PIT_AREA_M2 = 4  # 2m x 2m pits
RECHARGE_WELL_COST = 45000
RECHARGE_WELL_DEPTH_M = 15
RECHARGE_WELL_DIAMETER_M = 0.5


def recommend_system(annual_harvest, daily_water_demand, roof_area):
    """Pick a system size tier and report how much of the demand it covers."""
    annual_harvest = to_amount(annual_harvest)
    roof_area = to_amount(roof_area)
    annual_demand = to_amount(daily_water_demand) * 365

    # Large: a big harvest or a big roof on its own is enough
    if annual_harvest > 150000 or roof_area > 200:
        size = 'large'
    elif annual_harvest > 75000 or roof_area > 100:
        size = 'medium'
    else:
        size = 'small'

    if annual_demand > 0:
        demand_coverage = annual_harvest / annual_demand * 100
        demand_coverage = round(demand_coverage) if math.isfinite(demand_coverage) else 0
    else:
        # If there is no demand, coverage is not applicable.
        demand_coverage = 0

    return {
        'size': size,
        'tank_capacity': TANK_CAPACITY[size],
        'description': SYSTEM_COSTS[size]['description'],
        'demand_coverage': demand_coverage,
        'recommended': demand_coverage >= 30  # covers at least 30% of demand
    }


def estimate_costs(system_size, roof_area, annual_harvest):
    """Calculate equipment, installation and subsidy costs plus payback and ROI."""
    system = SYSTEM_COSTS.get(system_size, SYSTEM_COSTS['small'])
    roof_area = to_amount(roof_area)

    equipment = round(system['base'] + roof_area * system['per_sq_m'])
    installation = round(equipment * INSTALLATION_FRACTION)
    total = equipment + installation

    annual_savings = to_amount(annual_harvest) * WATER_COST_PER_LITER
    # None means the system never pays for itself
    payback_years = round(total / annual_savings, 1) if annual_savings > 0 else None

    subsidy = round(total * SUBSIDY_FRACTION)
    net_cost = total - subsidy
    roi = round(annual_savings / net_cost * 100) if net_cost > 0 else 0

    return {
        'equipment': equipment,
        'installation': installation,
        'total': total,
        'subsidy': subsidy,
        'net_cost': net_cost,
        'annual_savings': round(annual_savings),
        'payback_years': payback_years,
        'roi': roi
    }


def size_recharge_structures(roof_area, percolation_rate, annual_harvest):
    """Suggest recharge pits and wells from roof size, soil percolation and harvest."""
    roof_area = to_amount(roof_area)
    percolation_rate = to_amount(percolation_rate)
    annual_harvest = to_amount(annual_harvest)

    # Pit floor area needed to soak the annual harvest away (m²)
    if percolation_rate > 0:
        pit_area = (annual_harvest / 1000) / (percolation_rate * 365)
    else:
        pit_area = 0
    recommended_pits = math.ceil(pit_area / RECHARGE_PIT_AREA_M2)

    structures = []
    if roof_area < 100:
        quantity = max(1, recommended_pits)
        structures.append({
            'type': 'recharge_pit',
            'quantity': quantity,
            'dimensions': '2m x 2m x 2m',
            'cost': RECHARGE_PIT_COST * quantity,
            'description': 'Simple recharge pits with gravel filter'
        })
    else:
        structures.append({
            'type': 'recharge_well',
            'quantity': 1,
            'dimensions': f'{RECHARGE_WELL_DIAMETER_M}m dia x {RECHARGE_WELL_DEPTH_M}m deep',
            'cost': RECHARGE_WELL_COST,
            'description': 'Bore well for groundwater recharge'
        })
        if recommended_pits > 0:
            structures.append({
                'type': 'recharge_pit',
                'quantity': recommended_pits,
                'dimensions': '2m x 2m x 2m',
                'cost': RECHARGE_PIT_COST * recommended_pits,
                'description': 'Additional recharge pits'
            })

    return {
        'soil_suitability': 'Good' if percolation_rate > 0.5 else 'Moderate',
        'structures': structures,
        'total_cost': sum(structure['cost'] for structure in structures),
        'recharge_capacity': round(annual_harvest * percolation_rate),
        'recommendation': ('Excellent for groundwater recharge' if percolation_rate > 0.6
                           else 'Suitable with proper filtration')
    }
