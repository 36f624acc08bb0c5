import random

from .utils import iso_timestamp, utc_now

WEATHER_CONDITIONS = (
    'Sunny',
    'Partly Cloudy',
    'Overcast',
    'Light Rain',
    'Morning Fog',
    'Breezy',
)


def current_farm_weather(now=None):
    """Pseudo-random farm conditions for the admin dashboard.

    Seeded by the UTC date and hour, so every call within the same hour
    returns the same reading. Nothing here is persisted.
    """
    now = now or utc_now()
    rng = random.Random(now.strftime('%Y%m%d%H'))
    condition = rng.choice(WEATHER_CONDITIONS)
    rainy = condition == 'Light Rain'
    return {
        'condition': condition,
        'temperature': round(rng.uniform(12.0, 31.0), 1),
        'humidity': rng.randint(65, 95) if rainy else rng.randint(35, 80),
        'windSpeed': round(rng.uniform(2.0, 24.0), 1),
        'soilMoisture': rng.randint(40, 70) if rainy else rng.randint(18, 55),
        'uvIndex': 1 if rainy else rng.randint(2, 9),
        'updatedAt': iso_timestamp(now.replace(minute=0, second=0, microsecond=0)),
    }
