"""
Harvest volume and environmental impact calculations.

1 mm of rain over 1 m² of roof is 1 liter.
"""

import math

# Runoff coefficients for different roof materials
RUNOFF_COEFFICIENTS = {
    'concrete': 0.85,
    'metal': 0.90,
    'tiled': 0.75,
    'asbestos': 0.85,
    'other': 0.70,
}
DEFAULT_RUNOFF_COEFFICIENT = 0.70

FIRST_FLUSH_LOSS_MM = 2
STORAGE_EFFICIENCY = 0.95

CO2_KG_PER_LITER = 0.0003  # water treatment and distribution
ENERGY_KWH_PER_LITER = 0.002  # pumping and treatment
GROUNDWATER_FRACTION = 0.7
CO2_KG_PER_TREE = 21.77  # offset per tree per year

# Ceiling for any user-supplied quantity; keeps every product finite
MAX_AMOUNT = 1e9


def to_amount(value):
    """Coerce a user-supplied quantity to a finite float in [0, MAX_AMOUNT]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    except OverflowError:
        # integers too large for a float
        return MAX_AMOUNT if value > 0 else 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return min(number, MAX_AMOUNT)


def runoff_coefficient(roof_type):
    key = roof_type.lower() if isinstance(roof_type, str) else roof_type
    return RUNOFF_COEFFICIENTS.get(key, DEFAULT_RUNOFF_COEFFICIENT)


def compute_harvest(roof_area, roof_type, monthly_rainfall):
    """Calculate monthly and annual harvest after first-flush and storage losses."""
    roof_area = to_amount(roof_area)
    coefficient = runoff_coefficient(roof_type)

    rainfall = [to_amount(month) for month in list(monthly_rainfall or [])[:12]]
    rainfall += [0.0] * (12 - len(rainfall))

    monthly = []
    for rain in rainfall:
        effective = max(0.0, rain - FIRST_FLUSH_LOSS_MM)
        monthly.append(round(roof_area * effective * coefficient * STORAGE_EFFICIENCY))

    annual = sum(monthly)
    return {
        'monthly': monthly,
        'annual': annual,
        'daily': round(annual / 365),
        'peak': max(monthly),
        'runoff_coefficient': coefficient,
    }


def estimate_environmental_impact(annual_harvest):
    """Translate an annual harvest into CO2, energy, recharge and tree equivalents."""
    water_saved = to_amount(annual_harvest)
    co2_reduction = water_saved * CO2_KG_PER_LITER

    return {
        'water_saved': round(water_saved),
        'co2_reduction': round(co2_reduction),
        'energy_saved': round(water_saved * ENERGY_KWH_PER_LITER),
        'groundwater_recharge': round(water_saved * GROUNDWATER_FRACTION),
        'equivalent_trees': round(co2_reduction / CO2_KG_PER_TREE),
    }
