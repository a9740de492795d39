"""Schematic floor-plan generation and room occupancy.

Two deterministic templates:

- HOTEL: a corridor spine with rooms on both sides.
- everything else: rooms in a grid below a lounge and reception.

Levels are numbered from 0 (ground). ``floorDistribution`` on a room-type
spec maps a level to how many of its rooms sit there.
"""

import json
import math
from datetime import datetime
from typing import Any

from ...core.utils import start_of_day

LAYOUT_VERSION = 1
METRIC = "cm"

HOTEL_CANVAS = (3000, 1600)
LODGE_CANVAS = (2400, 1800)
CORRIDOR_WIDTH = 200
ROOM_W = 420
ROOM_H = 360
GAP = 40
ROWS_PER_COLUMN = 8
STAIR_SIZE = 200

MIN_FLOORS = 1
MAX_FLOORS = 10

OCCUPYING_STATUSES = ("CONFIRMED", "CHECKED_IN")


def floor_id(level: int) -> str:
    return "floor_g" if level == 0 else f"floor_{level}"


def floor_label(level: int) -> str:
    return "Ground" if level == 0 else f"Floor {level}"


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def parse_floor_distribution(raw: Any) -> dict[int, int]:
    """Read a floor distribution given as a dict or a JSON string.

    Non-numeric keys and unparsable input are ignored.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return {}
    if not isinstance(raw, dict):
        return {}

    result: dict[int, int] = {}
    for key, count in raw.items():
        try:
            level = int(float(key))
        except (TypeError, ValueError):
            continue
        result[level] = result.get(level, 0) + max(0, _as_int(count))
    return result


def resolve_floor_count(rooms_spec: list[dict], total_floors: int | None = None) -> int:
    """Number of levels: explicit value, else highest level used, clamped to [1, 10]."""
    if total_floors is not None and total_floors > 0:
        count = total_floors
    else:
        highest = -1
        for spec in rooms_spec:
            levels = parse_floor_distribution(spec.get("floorDistribution"))
            if levels:
                highest = max(highest, max(levels))
        count = highest + 1 if highest >= 0 else 1
    return min(MAX_FLOORS, max(MIN_FLOORS, count))


def expand_rooms(rooms_spec: list[dict], floor_count: int) -> list[dict]:
    """Flatten room-type specs into individual rooms with a level each."""
    top = floor_count - 1
    rooms = []
    for spec in rooms_spec:
        room_type = str(spec.get("roomType") or "Room")
        count = max(0, _as_int(spec.get("roomsCount")))

        levels: list[int] = []
        for level, n in sorted(parse_floor_distribution(spec.get("floorDistribution")).items()):
            levels.extend([min(max(level, 0), top)] * n)

        amenities = []
        for key in ("bathItems", "otherAmenities"):
            if isinstance(spec.get(key), list):
                amenities.extend(spec[key])

        for i in range(1, count + 1):
            room_id = f"{room_type}-{i}"
            rooms.append(
                {
                    "id": room_id,
                    "code": room_id,
                    "name": f"{room_type} {i}",
                    "roomType": room_type,
                    "level": levels[i - 1] if i <= len(levels) else 0,
                    "pricePerNight": float(spec.get("pricePerNight") or 0),
                    "photos": list(spec.get("roomImages") or [])
                    if isinstance(spec.get("roomImages"), list)
                    else [],
                    "amenities": amenities,
                    "accessible": spec.get("bathPrivate") == "yes",
                }
            )
    return rooms


def _room_node(room: dict, x: int, y: int, door: dict) -> dict:
    return {
        "id": room["id"],
        "type": "GuestRoom",
        "name": room["name"],
        "roomType": room["roomType"],
        "pos": {"x": x, "y": y},
        "size": {"w": ROOM_W, "h": ROOM_H},
        "doors": [door],
        "amenities": room["amenities"],
        "capacity": {"adults": 2, "children": 0},
        "photos": room["photos"],
        "pricePerNight": room["pricePerNight"],
        "accessible": room["accessible"],
        "code": room["code"],
    }


def _space(space_id: str, kind: str, name: str, x: int, y: int, w: int, h: int) -> dict:
    return {
        "id": space_id,
        "type": kind,
        "name": name,
        "pos": {"x": x, "y": y},
        "size": {"w": w, "h": h},
    }


def _hotel_floor(level: int, rooms: list[dict], with_stairs: bool) -> dict:
    width, height = HOTEL_CANVAS
    corridor_x = math.floor(width / 2 - CORRIDOR_WIDTH / 2)
    per_side = math.ceil(len(rooms) / 2)
    start_x_left = corridor_x - GAP - ROOM_W
    start_x_right = corridor_x + CORRIDOR_WIDTH + GAP
    start_y = 100

    nodes = []
    for idx, room in enumerate(rooms[:per_side]):
        x = start_x_left - (idx // ROWS_PER_COLUMN) * (ROOM_W + GAP)
        y = start_y + (idx % ROWS_PER_COLUMN) * (ROOM_H + GAP)
        door = {"x": x + ROOM_W, "y": y + ROOM_H // 2, "dir": "E"}
        nodes.append(_room_node(room, x, y, door))
    for idx, room in enumerate(rooms[per_side:]):
        x = start_x_right + (idx // ROWS_PER_COLUMN) * (ROOM_W + GAP)
        y = start_y + (idx % ROWS_PER_COLUMN) * (ROOM_H + GAP)
        door = {"x": x, "y": y + ROOM_H // 2, "dir": "W"}
        nodes.append(_room_node(room, x, y, door))

    corridor = _space(
        "COR_1", "Corridor", "Main Corridor",
        corridor_x, 60, CORRIDOR_WIDTH, height - 120,
    )
    spaces = [corridor]
    edges = [{"from": node["id"], "to": corridor["id"]} for node in nodes]

    if level == 0:
        spaces.append(
            _space("REC", "Reception", "Reception", max(60, corridor_x - 300), 60, 300, 220)
        )
    if with_stairs:
        spaces.append(
            _space(
                "STAIR", "Stairs", "Stairs",
                corridor_x, height - 60 - STAIR_SIZE, CORRIDOR_WIDTH, STAIR_SIZE,
            )
        )
        edges.append({"from": corridor["id"], "to": "STAIR"})

    return {
        "id": floor_id(level),
        "label": floor_label(level),
        "size": {"w": width, "h": height},
        "rooms": nodes,
        "spaces": spaces,
        "edges": edges,
    }


def _lodge_floor(level: int, rooms: list[dict], with_stairs: bool) -> dict:
    width, height = LODGE_CANVAS
    cols = max(1, math.ceil(math.sqrt(len(rooms))))
    start_x, start_y = 80, 360

    nodes = []
    for idx, room in enumerate(rooms):
        x = start_x + (idx % cols) * (ROOM_W + GAP)
        y = start_y + (idx // cols) * (ROOM_H + GAP)
        door = {"x": x + ROOM_W // 2, "y": y, "dir": "N"}
        nodes.append(_room_node(room, x, y, door))

    lounge = _space("LOU", "Lounge", "Lounge", 480, 60, 420, 240)
    spaces = [lounge]
    edges = [{"from": node["id"], "to": lounge["id"]} for node in nodes]

    if level == 0:
        spaces.insert(0, _space("REC", "Reception", "Reception", 80, 60, 360, 240))
        edges.append({"from": "LOU", "to": "REC"})
    if with_stairs:
        spaces.append(_space("STAIR", "Stairs", "Stairs", 940, 60, STAIR_SIZE, 240))
        edges.append({"from": "LOU", "to": "STAIR"})

    return {
        "id": floor_id(level),
        "label": floor_label(level),
        "size": {"w": width, "h": height},
        "rooms": nodes,
        "spaces": spaces,
        "edges": edges,
    }


def is_hotel(property_type: str | None) -> bool:
    return "HOTEL" in (property_type or "").upper()


def generate_layout(
    property_type: str | None,
    rooms_spec: list[dict] | None,
    total_floors: int | None = None,
) -> dict:
    """Generate a multi-floor schematic for a property.

    Args:
        property_type: e.g. "HOTEL", "LODGE"; any type containing HOTEL
            uses the corridor template
        rooms_spec: room-type specs (roomType, roomsCount, floorDistribution, ...)
        total_floors: explicit number of levels, overrides the distribution

    Returns:
        Layout document with floors, spaces, edges and stair connections
    """
    specs = [s for s in (rooms_spec or []) if isinstance(s, dict)]
    floor_count = resolve_floor_count(specs, total_floors)
    rooms = expand_rooms(specs, floor_count)
    build_floor = _hotel_floor if is_hotel(property_type) else _lodge_floor
    with_stairs = floor_count > 1

    floors = [
        build_floor(level, [r for r in rooms if r["level"] == level], with_stairs)
        for level in range(floor_count)
    ]
    connections = [
        {
            "from": {"floor": floor_id(level), "space": "STAIR"},
            "to": {"floor": floor_id(level + 1), "space": "STAIR"},
            "kind": "stairs",
        }
        for level in range(floor_count - 1)
    ]

    return {
        "version": LAYOUT_VERSION,
        "metric": METRIC,
        "entrances": [{"floor": floor_id(0), "space": "REC"}],
        "floors": floors,
        "connections": connections,
    }


def layout_room_codes(layout: dict | None) -> list[str]:
    codes = []
    for floor in (layout or {}).get("floors") or []:
        for room in floor.get("rooms") or []:
            if room.get("code"):
                codes.append(room["code"])
    return codes


# ----- Occupancy -----


def _nights(start: datetime, end: datetime) -> int:
    return round((end - start).total_seconds() / 86400)


def overlap_nights(
    window_start: datetime,
    window_end: datetime,
    check_in: datetime,
    check_out: datetime,
) -> int:
    """Nights of a [check_in, check_out) stay that fall inside the window."""
    start = max(start_of_day(check_in), window_start)
    end = min(start_of_day(check_out), window_end)
    if end <= start:
        return 0
    return _nights(start, end)


def compute_room_availability(
    layout: dict,
    bookings: list[Any],
    window_start: datetime,
    window_end: datetime,
) -> dict:
    """Per-room occupancy for a date window.

    ``bookings`` are objects with id, room_code, check_in, check_out and
    status; only CONFIRMED and CHECKED_IN stays count. Window ends are
    expected to be normalised to midnight already.
    """
    nights_total = max(1, _nights(window_start, window_end))

    by_code: dict[str, list[dict]] = {}
    for booking in bookings:
        status = getattr(booking.status, "value", booking.status)
        if status not in OCCUPYING_STATUSES or not booking.room_code:
            continue
        nights = overlap_nights(
            window_start, window_end, booking.check_in, booking.check_out
        )
        if nights <= 0:
            continue
        by_code.setdefault(booking.room_code, []).append(
            {
                "id": booking.id,
                "check_in": booking.check_in,
                "check_out": booking.check_out,
                "status": status,
                "nights": nights,
            }
        )

    rooms = []
    for code in layout_room_codes(layout):
        stays = by_code.get(code, [])
        nights_booked = min(nights_total, sum(s["nights"] for s in stays))
        pct = nights_booked / nights_total * 100
        rooms.append(
            {
                "code": code,
                "busy": pct > 0,
                "occupancy_pct": round(pct),
                "nights_booked": nights_booked,
                "nights_total": nights_total,
                "bookings": stays,
            }
        )

    return {
        "window": {"from": window_start, "to": window_end},
        "nights_total": nights_total,
        "rooms": rooms,
    }
