from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from nolsaf_backend.core.exceptions import ValidationError
from nolsaf_backend.modules.properties.layout import (
    compute_room_availability,
    generate_layout,
    layout_room_codes,
    overlap_nights,
    parse_floor_distribution,
    resolve_floor_count,
)
from nolsaf_backend.modules.properties.services import parse_window


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_floor_distribution_accepts_json_string():
    assert parse_floor_distribution('{"0": 2, "1": "3"}') == {0: 2, 1: 3}


def test_floor_distribution_ignores_garbage():
    assert parse_floor_distribution("not json") == {}
    assert parse_floor_distribution({"x": 2, "2": 1}) == {2: 1}
    assert parse_floor_distribution(None) == {}


def test_floor_count_prefers_explicit_value_and_clamps():
    assert resolve_floor_count([], 3) == 3
    assert resolve_floor_count([], 40) == 10
    assert resolve_floor_count([{"floorDistribution": {"2": 1}}]) == 3
    assert resolve_floor_count([]) == 1


def test_lodge_layout_single_floor():
    layout = generate_layout(
        "LODGE", [{"roomType": "Double", "roomsCount": 4, "pricePerNight": 40000}]
    )
    assert layout["version"] == 1
    assert layout["metric"] == "cm"
    assert layout["entrances"] == [{"floor": "floor_g", "space": "REC"}]
    assert len(layout["floors"]) == 1
    floor = layout["floors"][0]
    assert floor["label"] == "Ground"
    assert [r["code"] for r in floor["rooms"]] == [
        "Double-1",
        "Double-2",
        "Double-3",
        "Double-4",
    ]
    space_ids = [s["id"] for s in floor["spaces"]]
    assert "REC" in space_ids and "LOU" in space_ids
    assert "STAIR" not in space_ids
    assert layout["connections"] == []


def test_hotel_layout_spreads_rooms_over_floors():
    spec = [
        {
            "roomType": "Suite",
            "roomsCount": 3,
            "floorDistribution": {"0": 1, "1": 2},
        }
    ]
    layout = generate_layout("BOUTIQUE_HOTEL", spec)
    assert [f["id"] for f in layout["floors"]] == ["floor_g", "floor_1"]
    assert len(layout["floors"][0]["rooms"]) == 1
    assert len(layout["floors"][1]["rooms"]) == 2
    assert layout["floors"][0]["spaces"][0]["id"] == "COR_1"
    assert layout["connections"] == [
        {
            "from": {"floor": "floor_g", "space": "STAIR"},
            "to": {"floor": "floor_1", "space": "STAIR"},
            "kind": "stairs",
        }
    ]


def test_rooms_past_the_distribution_land_on_ground():
    spec = [{"roomType": "Twin", "roomsCount": 3, "floorDistribution": {"1": 1}}]
    layout = generate_layout("LODGE", spec)
    ground, first = layout["floors"]
    assert [r["code"] for r in first["rooms"]] == ["Twin-1"]
    assert [r["code"] for r in ground["rooms"]] == ["Twin-2", "Twin-3"]


def test_layout_is_deterministic():
    spec = [{"roomType": "Double", "roomsCount": 5}]
    assert generate_layout("HOTEL", spec) == generate_layout("HOTEL", spec)


def test_overlap_nights_clips_to_window():
    window = (_utc(2024, 3, 1), _utc(2024, 3, 8))
    assert overlap_nights(*window, _utc(2024, 2, 27, 14), _utc(2024, 3, 3, 10)) == 2
    assert overlap_nights(*window, _utc(2024, 3, 10), _utc(2024, 3, 12)) == 0


def test_room_availability_counts_only_occupying_stays():
    layout = generate_layout("LODGE", [{"roomType": "Double", "roomsCount": 2}])
    bookings = [
        SimpleNamespace(
            id=1,
            room_code="Double-1",
            check_in=_utc(2024, 3, 1, 14),
            check_out=_utc(2024, 3, 3, 10),
            status="CONFIRMED",
        ),
        SimpleNamespace(
            id=2,
            room_code="Double-2",
            check_in=_utc(2024, 3, 1),
            check_out=_utc(2024, 3, 5),
            status="CANCELED",
        ),
    ]
    result = compute_room_availability(
        layout, bookings, _utc(2024, 3, 1), _utc(2024, 3, 5)
    )
    assert result["nights_total"] == 4
    rooms = {r["code"]: r for r in result["rooms"]}
    assert rooms["Double-1"]["busy"] is True
    assert rooms["Double-1"]["nights_booked"] == 2
    assert rooms["Double-1"]["occupancy_pct"] == 50
    assert rooms["Double-2"]["busy"] is False
    assert rooms["Double-2"]["bookings"] == []


def test_layout_room_codes_handles_empty():
    assert layout_room_codes(None) == []
    assert layout_room_codes({"floors": [{"rooms": []}]}) == []


def test_parse_window_normalises_to_midnight():
    start, end = parse_window("2024-03-01T15:30:00", "2024-03-04T08:00:00")
    assert start == _utc(2024, 3, 1)
    assert end == _utc(2024, 3, 4)


def test_parse_window_defaults_to_one_day():
    now = _utc(2024, 3, 1, 9)
    assert parse_window(None, None, now=now) == (_utc(2024, 3, 1), _utc(2024, 3, 2))


@pytest.mark.parametrize(
    "date_from,date_to",
    [("nope", "2024-03-04"), ("2024-03-04", "2024-03-01")],
)
def test_parse_window_rejects_bad_ranges(date_from, date_to):
    with pytest.raises(ValidationError):
        parse_window(date_from, date_to)
