# tests/test_selection.py
"""Unit tests for the selection set."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock
from parking_desk.exceptions import ValidationError
from parking_desk.schemas.vehicle import VehicleRecord
from parking_desk.services.selection import SelectionSet


def make_vehicle(vid, mobile="9000000001", image=None):
    return VehicleRecord(id=vid, vehicle_number=f"KA01AB{vid}", mobile_number=mobile, vehicle_image_url=image)


def loaded(on_change=None):
    selection = SelectionSet(on_change=on_change)
    selection.load([
        make_vehicle("1", image="https://img/1.jpg"),
        make_vehicle("2"),
        make_vehicle("3", image="https://img/3.jpg"),
    ])
    return selection


class TestToggle:
    def test_toggle_adds_and_removes(self):
        selection = loaded()
        selection.toggle("2")
        assert selection.ids == ["2"]
        selection.toggle("2")
        assert selection.ids == []

    def test_toggle_twice_restores_ids_and_images(self):
        selection = loaded()
        selection.toggle("3")
        selection.toggle("1")
        before_ids, before_images = selection.ids, selection.image_refs

        selection.toggle("2")
        selection.toggle("2")

        assert selection.ids == before_ids
        assert selection.image_refs == before_images

    def test_ids_follow_list_order_not_click_order(self):
        selection = loaded()
        selection.toggle("3")
        selection.toggle("1")
        assert selection.ids == ["1", "3"]
        assert selection.image_refs == ["https://img/1.jpg", "https://img/3.jpg"]

    def test_unknown_id_rejected(self):
        selection = loaded()
        with pytest.raises(ValidationError):
            selection.toggle("99")

    def test_every_mutation_fires_on_change(self):
        on_change = MagicMock()
        selection = loaded(on_change)
        selection.toggle("1")
        selection.select_all()
        selection.clear_all()
        assert on_change.call_count == 3


class TestBulkSelection:
    def test_select_all_and_clear_all(self):
        selection = loaded()
        selection.select_all()
        assert len(selection) == 3
        assert selection.image_refs == ["https://img/1.jpg", "https://img/3.jpg"]
        selection.clear_all()
        assert selection.is_empty()
        assert selection.image_refs == []

    def test_toggle_all_selects_then_clears(self):
        selection = loaded()
        selection.toggle("1")
        selection.toggle_all()
        assert len(selection) == 3
        selection.toggle_all()
        assert selection.is_empty()

    def test_blank_image_url_is_not_a_reference(self):
        selection = SelectionSet()
        selection.load([make_vehicle("1", image="   ")])
        selection.select_all()
        assert selection.image_refs == []


class TestReload:
    def test_reload_prunes_missing_ids(self):
        on_change = MagicMock()
        selection = loaded(on_change)
        selection.select_all()
        on_change.reset_mock()

        selection.load([make_vehicle("1", image="https://img/1.jpg")])

        assert selection.ids == ["1"]
        on_change.assert_called_once()

    def test_reload_keeping_selection_does_not_fire(self):
        on_change = MagicMock()
        selection = loaded(on_change)
        selection.toggle("1")
        on_change.reset_mock()

        selection.load([make_vehicle("1", image="https://img/1.jpg"), make_vehicle("4")])

        assert selection.ids == ["1"]
        on_change.assert_not_called()

    @pytest.mark.parametrize("edited", [
        make_vehicle("1", image=None),
        make_vehicle("1", image="https://img/1-new.jpg"),
        make_vehicle("1", mobile="9111111111", image="https://img/1.jpg"),
    ])
    def test_reload_with_edited_selected_record_fires(self, edited):
        on_change = MagicMock()
        selection = loaded(on_change)
        selection.toggle("1")
        on_change.reset_mock()

        selection.load([edited, make_vehicle("2")])

        assert selection.ids == ["1"]
        assert selection.image_refs == ([edited.vehicle_image_url] if edited.has_image else [])
        on_change.assert_called_once()


class TestMobileNumbers:
    def test_shared_mobile_number(self):
        selection = loaded()
        selection.select_all()
        assert selection.shared_mobile_number() == "9000000001"

    def test_diverging_mobile_numbers(self):
        selection = SelectionSet()
        selection.load([make_vehicle("1", "9000000001"), make_vehicle("2", "9000000002")])
        selection.select_all()
        assert selection.shared_mobile_number() is None
        assert selection.mobile_numbers == ["9000000001", "9000000002"]
