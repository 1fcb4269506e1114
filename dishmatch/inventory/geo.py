from __future__ import annotations

import numpy as np

from .models import Coordinates
from .ports import PlaceResolver

EARTH_RADIUS_KM = 6378.1


def km_to_radians(distance_km: float) -> float:
    """Convert a surface distance in km into the store's sphere unit."""
    return distance_km / EARTH_RADIUS_KM


def angular_distance(
    lat: float,
    lon: float,
    lats: np.ndarray,
    lons: np.ndarray,
) -> np.ndarray:
    """Haversine central angle (radians) from one point to many."""
    phi1 = np.radians(lat)
    phi2 = np.radians(lats)
    dphi = phi2 - phi1
    dlambda = np.radians(lons) - np.radians(lon)
    a = np.sin(dphi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlambda / 2.0) ** 2
    return 2.0 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def distance_km(a: Coordinates, b: Coordinates) -> float:
    angle = angular_distance(a[0], a[1], np.array([b[0]]), np.array([b[1]]))
    return float(angle[0] * EARTH_RADIUS_KM)


class StaticPlaceResolver(PlaceResolver):
    """Case-insensitive lookup over a fixed gazetteer."""

    def __init__(self, places: dict[str, Coordinates] | None = None) -> None:
        self._places: dict[str, Coordinates] = {}
        for name, coords in (places or {}).items():
            self.add_place(name, coords)

    def add_place(self, name: str, coords: Coordinates) -> None:
        self._places[name.strip().lower()] = (float(coords[0]), float(coords[1]))

    def resolve_coordinates(self, place_name: str) -> Coordinates | None:
        if not place_name:
            return None
        return self._places.get(place_name.strip().lower())

    def clear(self) -> None:
        self._places.clear()
