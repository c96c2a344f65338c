# parking_desk/services/selection.py
"""
Selection of vehicles for a bulk operation.

Members are kept in the order of the loaded vehicle list, so toggling an id
twice always restores the previous selection and image list exactly. Every
mutation recomputes the derived image list and fires ``on_change`` so the
owning workflow can reset verification.
"""

from typing import Callable, Iterable, Optional

from parking_desk.exceptions import ValidationError
from parking_desk.schemas.vehicle import VehicleRecord


def _proof_fields(vehicle: VehicleRecord) -> tuple:
    return vehicle.mobile_number, vehicle.vehicle_image_url if vehicle.has_image else None


class SelectionSet:
    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self._vehicles: dict[str, VehicleRecord] = {}
        self._selected: set[str] = set()
        self._image_refs: list[str] = []
        self._on_change = on_change

    # ── Loaded list ───────────────────────────────────────────────────────
    def load(self, vehicles: Iterable[VehicleRecord]):
        """
        Replace the visible list. Selected ids that disappeared are dropped,
        and a selected record whose owner or image changed counts as a
        selection change.
        """
        previous = self._vehicles
        self._vehicles = {v.id: v for v in vehicles}
        stale = self._selected - self._vehicles.keys()
        self._selected -= stale
        edited = [vid for vid in self._selected
                  if _proof_fields(previous[vid]) != _proof_fields(self._vehicles[vid])]
        if stale or edited:
            self._changed()
        else:
            self._recompute()

    @property
    def vehicles(self) -> list[VehicleRecord]:
        return list(self._vehicles.values())

    # ── Mutations ─────────────────────────────────────────────────────────
    def toggle(self, vehicle_id: str):
        if vehicle_id not in self._vehicles:
            raise ValidationError(f"Vehicle {vehicle_id} is not in the current list")
        if vehicle_id in self._selected:
            self._selected.discard(vehicle_id)
        else:
            self._selected.add(vehicle_id)
        self._changed()

    def select_all(self):
        self._selected = set(self._vehicles)
        self._changed()

    def clear_all(self):
        self._selected = set()
        self._changed()

    def toggle_all(self):
        """Header checkbox: clear when everything is selected, otherwise select all."""
        if self._vehicles and len(self._selected) == len(self._vehicles):
            self.clear_all()
        else:
            self.select_all()

    def _changed(self):
        self._recompute()
        if self._on_change:
            self._on_change()

    def _recompute(self):
        self._image_refs = [v.vehicle_image_url for v in self.selected_vehicles if v.has_image]

    # ── Derived state ─────────────────────────────────────────────────────
    @property
    def ids(self) -> list[str]:
        return [vid for vid in self._vehicles if vid in self._selected]

    @property
    def selected_vehicles(self) -> list[VehicleRecord]:
        return [v for vid, v in self._vehicles.items() if vid in self._selected]

    @property
    def image_refs(self) -> list[str]:
        return list(self._image_refs)

    @property
    def mobile_numbers(self) -> list[str]:
        return [v.mobile_number for v in self.selected_vehicles]

    def shared_mobile_number(self) -> Optional[str]:
        """The one mobile number every selected vehicle has, else None."""
        numbers = set(self.mobile_numbers)
        if len(numbers) != 1:
            return None
        number = numbers.pop()
        return number or None

    def is_empty(self) -> bool:
        return not self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, vehicle_id) -> bool:
        return vehicle_id in self._selected
