from datetime import datetime, timezone

from mothercrop.notifications import NotificationQueue
from mothercrop.weather import WEATHER_CONDITIONS, current_farm_weather


class ManualClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_notifications_expire_after_ttl():
    clock = ManualClock()
    queue = NotificationQueue(ttl_seconds=4.0, clock=clock)
    first = queue.push("Saved", "success")
    clock.now += 2
    second = queue.push("Oops", "error")
    assert [item["id"] for item in queue.active()] == [first["id"], second["id"]]

    clock.now += 2
    assert [item["message"] for item in queue.active()] == ["Oops"]
    clock.now += 2.5
    assert queue.active() == []


def test_unknown_level_becomes_info():
    queue = NotificationQueue()
    assert queue.push("Hello", "warning")["type"] == "info"
    assert queue.push("Hello")["type"] == "info"


def test_dismiss_and_clear():
    queue = NotificationQueue()
    kept = queue.push("a")
    gone = queue.push("b")
    assert queue.dismiss(gone["id"]) is True
    assert queue.dismiss(gone["id"]) is False
    assert [item["id"] for item in queue.active()] == [kept["id"]]
    queue.clear()
    assert queue.active() == []


def test_weather_is_stable_within_an_hour():
    morning = datetime(2024, 5, 1, 9, 5, tzinfo=timezone.utc)
    later = datetime(2024, 5, 1, 9, 55, tzinfo=timezone.utc)
    reading = current_farm_weather(morning)
    assert reading == current_farm_weather(later)
    assert reading["updatedAt"] == "2024-05-01T09:00:00.000Z"
    assert reading["condition"] in WEATHER_CONDITIONS
    assert 0 <= reading["humidity"] <= 100
    assert 0 <= reading["soilMoisture"] <= 100


def test_weather_keys():
    reading = current_farm_weather()
    assert set(reading) == {"condition", "temperature", "humidity", "windSpeed", "soilMoisture", "uvIndex", "updatedAt"}


def test_channels_keep_toasts_apart():
    current = {"channel": "tab-a"}
    queue = NotificationQueue(channel=lambda: current["channel"])
    mine = queue.push("Saved", "success")

    current["channel"] = "tab-b"
    assert queue.active() == []
    assert queue.dismiss(mine["id"]) is False

    current["channel"] = "tab-a"
    assert [item["id"] for item in queue.active()] == [mine["id"]]
