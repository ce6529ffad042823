"""
Regional climate lookup.

Resolves a coordinate pair to an annual and monthly rainfall profile plus a
soil percolation rate. Resolution is tiered, first match wins:

    remote climatology (optional) -> city table -> climate zone
    -> state average -> national default

Remote sources are best-effort enrichment. Any failure there falls through to
the local tables, so ``resolve_climate`` never raises.
"""

import logging
import math
import os
from math import radians, sin, cos, sqrt, asin

import pandas as pd
import requests

import config

logger = logging.getLogger(__name__)

KM_PER_DEGREE = 111.32

# Generic pattern for India, used when nothing more specific matches (mm)
NATIONAL_PATTERN = [12, 18, 22, 28, 45, 85, 130, 115, 75, 35, 18, 12]
NATIONAL_ANNUAL_MM = 900

CONFIDENCE = {
    'city': 0.9,
    'zone': 0.8,
    'state': 0.7,
    'default': 0.6,
}

SOIL_TYPES = {
    'alluvial': {'percolation_rate': 0.8, 'description': 'Gangetic plains'},
    'black': {'percolation_rate': 0.4, 'description': 'Deccan plateau'},
    'red': {'percolation_rate': 0.6, 'description': 'South India'},
    'laterite': {'percolation_rate': 0.7, 'description': 'Western Ghats'},
    'desert': {'percolation_rate': 0.9, 'description': 'Rajasthan'},
}


class ClimateSourceError(Exception):
    """Remote climate source failure."""


# --- Lookup tables ---

def _load_table(filename):
    path = os.path.join(config.DATA_DIR, filename)
    try:
        return pd.read_csv(path)
    except FileNotFoundError:
        logger.error(f"Climate table not found at '{path}'. Falling back to zone patterns only.")
        return None


# Loaded once at import to avoid repeated file reads
city_df = _load_table('city_rainfall.csv')
state_df = _load_table('state_rainfall.csv')


def haversine(lat1, lon1, lat2, lon2):
    """Calculate the distance between two points on Earth using the Haversine formula."""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat/2)**2 + cos(lat1) * cos(lat2) * sin(dlon/2)**2
    c = 2 * asin(sqrt(a))
    r = 6371  # Radius of Earth in kilometers
    return c * r


def find_nearest_city(lat, lon):
    """Return the nearest city whose own match radius covers the point, or None."""
    if city_df is None or city_df.empty:
        return None
    df = city_df.copy()  # Use a copy to avoid modifying the shared DataFrame
    df['distance'] = df.apply(
        lambda row: haversine(lat, lon, row['Latitude'], row['Longitude']),
        axis=1
    )
    df = df[df['distance'] <= df['Match_Radius_deg'] * KM_PER_DEGREE]
    if df.empty:
        return None
    return df.loc[df['distance'].idxmin()].to_dict()


def find_state(lat, lon):
    """Return the first state whose bounding box contains the point, or None."""
    if state_df is None or state_df.empty:
        return None
    inside = state_df[
        (state_df['Min_Lat'] <= lat) & (lat <= state_df['Max_Lat']) &
        (state_df['Min_Lon'] <= lon) & (lon <= state_df['Max_Lon'])
    ]
    if inside.empty:
        return None
    return inside.iloc[0].to_dict()


# --- Climate zones ---

def is_coastal(lat, lon):
    """Simplified coastal detection for India."""
    coastal_bands = [
        ((8, 23), (68, 73)),   # West coast
        ((8, 22), (79, 87)),   # East coast
        ((20, 24), (68, 72)),  # Gujarat coast
    ]
    return any(
        lat_range[0] <= lat <= lat_range[1] and lon_range[0] <= lon <= lon_range[1]
        for lat_range, lon_range in coastal_bands
    )


# Ordered: the first zone whose predicate holds wins
CLIMATE_ZONES = [
    {
        'zone': 'western_ghats',
        'label': 'Western Ghats',
        'condition': lambda lat, lon: 8 <= lat <= 21 and 72 <= lon <= 77,
        'annual_rainfall': 2500,
        'monthly_pattern': [20, 15, 25, 45, 120, 180, 220, 200, 150, 80, 30, 25],
    },
    {
        'zone': 'northeast',
        'label': 'Northeast India',
        'condition': lambda lat, lon: lat >= 24 and lon >= 88,
        'annual_rainfall': 3000,
        'monthly_pattern': [25, 30, 80, 150, 200, 280, 320, 300, 220, 100, 40, 30],
    },
    {
        'zone': 'desert',
        'label': 'Desert Region',
        'condition': lambda lat, lon: 24 <= lat <= 30 and 69 <= lon <= 78,
        'annual_rainfall': 300,
        'monthly_pattern': [2, 3, 5, 8, 15, 25, 45, 40, 25, 10, 5, 3],
    },
    {
        'zone': 'gangetic_plains',
        'label': 'Gangetic Plains',
        'condition': lambda lat, lon: 24 <= lat <= 30 and 77 <= lon <= 88,
        'annual_rainfall': 1000,
        'monthly_pattern': [15, 20, 25, 35, 60, 120, 180, 160, 100, 40, 20, 15],
    },
    {
        'zone': 'deccan',
        'label': 'Deccan Plateau',
        'condition': lambda lat, lon: 12 <= lat <= 24 and 74 <= lon <= 80,
        'annual_rainfall': 800,
        'monthly_pattern': [10, 15, 20, 30, 50, 100, 140, 120, 80, 35, 15, 10],
    },
    {
        'zone': 'coastal',
        'label': 'Coastal Region',
        'condition': is_coastal,
        'annual_rainfall': 1500,
        'monthly_pattern': [25, 20, 30, 50, 100, 150, 200, 180, 120, 60, 30, 25],
    },
]


def match_climate_zone(lat, lon):
    for zone in CLIMATE_ZONES:
        if zone['condition'](lat, lon):
            return zone
    return None


def scale_pattern(pattern, annual_rainfall):
    """Stretch a monthly pattern so its months add up to ``annual_rainfall``."""
    total = sum(pattern)
    if total <= 0 or annual_rainfall <= 0:
        return [0.0] * 12
    return [round(month * annual_rainfall / total, 1) for month in pattern]


def regional_pattern(lat, lon):
    zone = match_climate_zone(lat, lon)
    return zone['monthly_pattern'] if zone else NATIONAL_PATTERN


# --- Soil ---

def resolve_soil(lat, lon):
    """Simplified soil type mapping for India. Never fails."""
    soil_type = 'alluvial'
    if 12 <= lat <= 24 and 74 <= lon <= 80:
        soil_type = 'black'
    elif 8 <= lat <= 16:
        soil_type = 'red'
    elif lat >= 24 and lon <= 75:
        soil_type = 'desert'

    return {
        'soil_type': soil_type,
        'soil_percolation_rate': SOIL_TYPES[soil_type]['percolation_rate'],
        'soil_description': SOIL_TYPES[soil_type]['description'],
    }


# --- Remote sources ---

class NasaPowerSource:
    """
    Monthly precipitation climatology from the NASA POWER API.
    FREE, no API key required.
    """

    url = "https://power.larc.nasa.gov/api/temporal/climatology/point"
    month_keys = ['JAN', 'FEB', 'MAR', 'APR', 'MAY', 'JUN',
                  'JUL', 'AUG', 'SEP', 'OCT', 'NOV', 'DEC']
    days_per_month = [31, 28.25, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]

    def __init__(self, timeout=None):
        self.timeout = timeout if timeout is not None else config.CLIMATE_API_TIMEOUT

    def fetch(self, lat, lon):
        params = {
            "parameters": "PRECTOTCORR",
            "community": "AG",
            "longitude": lon,
            "latitude": lat,
            "format": "JSON"
        }
        try:
            response = requests.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ClimateSourceError(f"NASA POWER request failed: {e}") from e

        try:
            # mm/day per calendar month
            daily_means = data['properties']['parameter']['PRECTOTCORR']
            monthly = [
                round(float(daily_means[key]) * days, 1)
                for key, days in zip(self.month_keys, self.days_per_month)
            ]
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise ClimateSourceError(f"Unexpected NASA POWER payload: {e}") from e

        if any(month < 0 for month in monthly):
            raise ClimateSourceError("NASA POWER returned fill values")

        return {
            'annual_rainfall_mm': round(sum(monthly), 1),
            'monthly_rainfall_mm': monthly,
            'zone': 'nasa_power',
            'location_label': 'NASA POWER climatology',
            'confidence': 0.85,
            'source': 'nasa_power',
        }


def fetch_current_weather(lat, lon, api_key=None, timeout=None):
    """Return current conditions from OpenWeatherMap, or None."""
    api_key = api_key if api_key is not None else config.OPENWEATHER_API_KEY
    if not api_key:
        return None
    try:
        response = requests.get(
            "https://api.openweathermap.org/data/2.5/weather",
            params={'lat': lat, 'lon': lon, 'appid': api_key, 'units': 'metric'},
            timeout=timeout if timeout is not None else config.CLIMATE_API_TIMEOUT,
        )
        response.raise_for_status()
        j = response.json()
        return {
            'temperature': j['main']['temp'],
            'humidity': j['main']['humidity'],
            'precipitation': (j.get('rain') or {}).get('1h', 0),
            'description': (j.get('weather') or [{}])[0].get('description', '').title(),
        }
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
        logger.warning(f"OpenWeatherMap lookup failed: {e}")
        return None


# --- Resolution ---

def _coordinate(value):
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _from_source(source, lat, lon):
    # Any failure here means "use the local tables", whatever the source raised
    try:
        profile = source.fetch(lat, lon)
        monthly = [float(m) for m in profile['monthly_rainfall_mm']]
        confidence = float(profile.get('confidence', 0.8))
        result = {
            'annual_rainfall_mm': round(sum(monthly), 1),
            'monthly_rainfall_mm': monthly,
            'zone': str(profile.get('zone', 'remote')),
            'location_label': str(profile.get('location_label', 'Remote climatology')),
            'confidence': min(0.9, max(0.5, confidence)) if math.isfinite(confidence) else 0.8,
            'source': str(profile.get('source', 'remote')),
        }
    except Exception as e:
        logger.warning(f"Remote climatology unavailable, using regional tables: {e!r}")
        return None

    if len(monthly) != 12 or not all(math.isfinite(m) and m >= 0 for m in monthly):
        logger.warning("Remote climatology did not return 12 usable months")
        return None
    if not math.isfinite(result['annual_rainfall_mm']):
        logger.warning("Remote climatology annual total is not finite")
        return None

    return result


def _from_tables(lat, lon):
    city = find_nearest_city(lat, lon)
    if city:
        return {
            'annual_rainfall_mm': float(city['Rainfall_mm']),
            'monthly_rainfall_mm': scale_pattern(regional_pattern(lat, lon), float(city['Rainfall_mm'])),
            'zone': 'city',
            'location_label': f"{city['Region_Name']}, {city['State']}",
            'confidence': CONFIDENCE['city'],
            'source': 'city_database',
        }

    zone = match_climate_zone(lat, lon)
    if zone:
        return {
            'annual_rainfall_mm': float(zone['annual_rainfall']),
            'monthly_rainfall_mm': [float(m) for m in zone['monthly_pattern']],
            'zone': zone['zone'],
            'location_label': zone['label'],
            'confidence': CONFIDENCE['zone'],
            'source': 'regional_patterns',
        }

    state = find_state(lat, lon)
    if state:
        return {
            'annual_rainfall_mm': float(state['Rainfall_mm']),
            'monthly_rainfall_mm': scale_pattern(NATIONAL_PATTERN, float(state['Rainfall_mm'])),
            'zone': 'state_average',
            'location_label': state['State'],
            'confidence': CONFIDENCE['state'],
            'source': 'state_average',
        }

    return {
        'annual_rainfall_mm': float(NATIONAL_ANNUAL_MM),
        'monthly_rainfall_mm': [float(m) for m in NATIONAL_PATTERN],
        'zone': 'general',
        'location_label': 'India',
        'confidence': CONFIDENCE['default'],
        'source': 'national_average',
    }


def resolve_climate(lat, lon, source=None):
    """
    Resolve coordinates to a climate profile.

    Args:
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        source: Optional object with ``fetch(lat, lon)`` returning a profile
            dict. Defaults to NASA POWER when CLIMATE_API_ENABLED is set.

    Returns:
        dict: annual/monthly rainfall, zone, confidence, source, soil data and
        optional current weather
    """
    lat, lon = _coordinate(lat), _coordinate(lon)

    if source is None and config.CLIMATE_API_ENABLED:
        source = NasaPowerSource()

    profile = _from_source(source, lat, lon) if source is not None else None
    if profile is None:
        profile = _from_tables(lat, lon)

    profile.update(resolve_soil(lat, lon))
    profile['current'] = fetch_current_weather(lat, lon)

    logger.info(
        f"Climate for ({lat:.4f}, {lon:.4f}): {profile['location_label']} "
        f"{profile['annual_rainfall_mm']}mm via {profile['source']}"
    )
    return profile
