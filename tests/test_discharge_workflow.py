# tests/test_discharge_workflow.py
"""Bulk discharge scenarios end to end against a mocked parking API."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from parking_desk.exceptions import (
    ConflictError, NotVerifiedError, ServiceError, ValidationError,
)
from parking_desk.schemas.submission import BulkSubmissionResult
from parking_desk.schemas.vehicle import VehicleFilters, VehicleRecord, VehicleStatus
from parking_desk.services.discharge_workflow import DischargeWorkflow
from parking_desk.services.parking_api import OtpPurpose
from parking_desk.services.verification import ImageStatus, OtpStatus, VerificationMode

SHARED_MOBILE = "9000000001"


def make_vehicle(vid, mobile=SHARED_MOBILE, image=None):
    return VehicleRecord(id=vid, vehicle_number=f"KA01AB{vid}", mobile_number=mobile, vehicle_image_url=image)


def make_workflow(vehicles):
    api = MagicMock()
    api.list_vehicles = AsyncMock(return_value=vehicles)
    api.send_otp = AsyncMock(return_value={})
    api.verify_otp = AsyncMock(return_value=True)
    api.discharge_vehicles = AsyncMock(
        side_effect=lambda ids, method, **kw: BulkSubmissionResult(count=len(ids), vehicle_ids=ids)
    )
    storage = MagicMock()
    storage.upload_image = AsyncMock(return_value="https://img/discharge/person.jpg")
    return DischargeWorkflow(api, storage), api, storage


class TestOtpDischarge:
    @pytest.mark.asyncio
    async def test_three_vehicles_shared_mobile(self):
        workflow, api, _ = make_workflow([make_vehicle("1"), make_vehicle("2"), make_vehicle("3")])
        await workflow.load_vehicles()
        workflow.select_all()
        workflow.set_mode(VerificationMode.OTP)

        await workflow.send_otp()
        await workflow.verify_otp("482913")
        assert workflow.can_submit()

        api.list_vehicles.return_value = []
        result = await workflow.submit()

        assert result.count == 3
        api.send_otp.assert_awaited_once_with(SHARED_MOBILE, OtpPurpose.DISCHARGE)
        api.discharge_vehicles.assert_awaited_once()
        assert api.discharge_vehicles.call_args.args[:2] == (["1", "2", "3"], "otp")
        assert workflow.selection.is_empty()
        assert workflow.verification.mode == VerificationMode.OTP
        assert workflow.verification.state.status == OtpStatus.IDLE
        assert api.list_vehicles.await_count == 2

    @pytest.mark.asyncio
    async def test_different_mobiles_rejected_before_send(self):
        workflow, api, _ = make_workflow([make_vehicle("1", "9000000001"), make_vehicle("2", "9000000002")])
        await workflow.load_vehicles()
        workflow.select_all()

        with pytest.raises(ValidationError):
            await workflow.send_otp()

        api.send_otp.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_selection_change_discards_verified_otp(self):
        workflow, api, _ = make_workflow([make_vehicle("1"), make_vehicle("2")])
        await workflow.load_vehicles()
        workflow.toggle("1")
        await workflow.send_otp()
        await workflow.verify_otp("482913")

        workflow.toggle("2")

        assert not workflow.can_submit()
        with pytest.raises(NotVerifiedError):
            await workflow.submit()
        api.discharge_vehicles.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_late_verify_response_after_mode_switch(self):
        workflow, api, _ = make_workflow([make_vehicle("1")])
        gate = asyncio.Event()

        async def slow_verify(*args):
            await gate.wait()
            return True

        api.verify_otp.side_effect = slow_verify
        await workflow.load_vehicles()
        workflow.toggle("1")
        await workflow.send_otp()

        pending = asyncio.create_task(workflow.verify_otp("482913"))
        await asyncio.sleep(0.01)
        workflow.set_mode(VerificationMode.IMAGE)
        workflow.set_mode(VerificationMode.OTP)
        gate.set()
        await pending

        assert workflow.verification.state.status == OtpStatus.IDLE
        assert not workflow.can_submit()

    @pytest.mark.asyncio
    async def test_reload_with_changed_mobile_discards_verified_otp(self):
        workflow, api, _ = make_workflow([make_vehicle("1"), make_vehicle("2")])
        await workflow.load_vehicles()
        workflow.select_all()
        await workflow.send_otp()
        await workflow.verify_otp("482913")
        assert workflow.can_submit()

        api.list_vehicles.return_value = [make_vehicle("1"), make_vehicle("2", "9111111111")]
        await workflow.load_vehicles()

        assert workflow.selection.ids == ["1", "2"]
        assert workflow.verification.state.status == OtpStatus.IDLE
        assert not workflow.can_submit()
        with pytest.raises(NotVerifiedError):
            await workflow.submit()
        api.discharge_vehicles.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_otp_for_other_mobile_cannot_submit(self):
        workflow, api, _ = make_workflow([make_vehicle("1"), make_vehicle("2")])
        await workflow.load_vehicles()
        workflow.select_all()
        await workflow.send_otp()
        await workflow.verify_otp("482913")

        workflow.verification.state.mobile_number = "9111111111"

        assert not workflow.can_submit()
        with pytest.raises(NotVerifiedError):
            await workflow.submit()
        api.discharge_vehicles.assert_not_awaited()


class TestImageDischarge:
    @pytest.mark.asyncio
    async def test_no_image_keeps_tracker_unavailable(self):
        workflow, api, _ = make_workflow([make_vehicle("1")])
        await workflow.load_vehicles()
        workflow.toggle("1")
        workflow.set_mode(VerificationMode.IMAGE)

        assert workflow.verification.state.status == ImageStatus.UNAVAILABLE
        assert not workflow.can_submit()
        assert workflow.snapshot()["mode_suggestion"] == "otp"
        with pytest.raises(ValidationError):
            workflow.verify_image()
        assert workflow.verification.state.status == ImageStatus.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_attested_image_allows_submit(self):
        workflow, api, _ = make_workflow([make_vehicle("1", image="https://img/1.jpg"), make_vehicle("2")])
        await workflow.load_vehicles()
        workflow.select_all()
        workflow.set_mode(VerificationMode.IMAGE)
        workflow.verify_image()

        result = await workflow.submit()

        assert result.count == 2
        assert api.discharge_vehicles.call_args.args[1] == "image"

    @pytest.mark.asyncio
    async def test_reload_dropping_image_discards_attestation(self):
        workflow, api, _ = make_workflow([make_vehicle("1", image="https://img/1.jpg")])
        await workflow.load_vehicles()
        workflow.toggle("1")
        workflow.set_mode(VerificationMode.IMAGE)
        workflow.verify_image()
        assert workflow.can_submit()

        api.list_vehicles.return_value = [make_vehicle("1")]
        await workflow.load_vehicles()

        assert "1" in workflow.selection
        assert workflow.selection.image_refs == []
        assert workflow.verification.state.status == ImageStatus.UNAVAILABLE
        assert not workflow.can_submit()
        with pytest.raises(NotVerifiedError):
            await workflow.submit()
        api.discharge_vehicles.assert_not_awaited()


class TestDischargePhoto:
    @pytest.mark.asyncio
    async def test_photo_sent_with_discharge_and_cleared(self):
        workflow, api, storage = make_workflow([make_vehicle("1")])
        await workflow.load_vehicles()
        workflow.toggle("1")
        workflow.set_mode(VerificationMode.MANUAL)
        await workflow.attach_discharge_photo(MagicMock())

        assert workflow.can_submit()
        await workflow.submit()

        assert api.discharge_vehicles.call_args.kwargs["discharge_image_url"] == "https://img/discharge/person.jpg"
        assert storage.upload_image.call_args.args[1] == "discharge"
        assert workflow.discharge_photo_url is None

    @pytest.mark.asyncio
    async def test_photo_does_not_affect_can_submit(self):
        workflow, _, _ = make_workflow([make_vehicle("1")])
        await workflow.load_vehicles()
        workflow.toggle("1")
        await workflow.attach_discharge_photo(MagicMock())
        assert not workflow.can_submit()
        workflow.remove_discharge_photo()
        assert workflow.discharge_photo_url is None


class TestFailures:
    @pytest.mark.asyncio
    async def test_service_error_preserves_state(self):
        workflow, api, _ = make_workflow([make_vehicle("1"), make_vehicle("2")])
        api.discharge_vehicles.side_effect = ServiceError("Server error. Please try again later.")
        await workflow.load_vehicles()
        workflow.select_all()
        await workflow.send_otp()
        await workflow.verify_otp("482913")

        with pytest.raises(ServiceError):
            await workflow.submit()

        assert workflow.selection.ids == ["1", "2"]
        assert workflow.can_submit()

    @pytest.mark.asyncio
    async def test_conflict_then_override(self):
        workflow, api, _ = make_workflow([make_vehicle("1")])
        conflict = ConflictError("Token already used", conflicts=[{"id": "9"}])
        api.discharge_vehicles.side_effect = [conflict, BulkSubmissionResult(count=1, vehicle_ids=["1"])]
        await workflow.load_vehicles()
        workflow.toggle("1")
        workflow.set_mode(VerificationMode.MANUAL)

        with pytest.raises(ConflictError):
            await workflow.submit()
        assert workflow.snapshot()["pending_conflict"]["conflicts"] == [{"id": "9"}]
        assert workflow.selection.ids == ["1"]

        result = await workflow.resubmit_with_override()

        assert result.count == 1
        assert api.discharge_vehicles.call_args.kwargs["allow_duplicate"] is True
        assert workflow.pending_conflict is None

    @pytest.mark.asyncio
    async def test_override_without_conflict_rejected(self):
        workflow, api, _ = make_workflow([make_vehicle("1")])
        with pytest.raises(ValidationError):
            await workflow.resubmit_with_override()
        api.discharge_vehicles.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reload_failure_after_success_is_not_raised(self):
        workflow, api, _ = make_workflow([make_vehicle("1")])
        await workflow.load_vehicles()
        workflow.toggle("1")
        workflow.set_mode(VerificationMode.MANUAL)
        api.list_vehicles.side_effect = ServiceError("Network error. Please check your connection.")

        result = await workflow.submit()

        assert result.count == 1


class TestFilters:
    @pytest.mark.asyncio
    async def test_status_forced_to_parked(self):
        workflow, api, _ = make_workflow([])
        await workflow.load_vehicles(VehicleFilters(status=VehicleStatus.DISCHARGED, mobile_number="900"))
        filters = api.list_vehicles.call_args.args[0]
        assert filters.status == VehicleStatus.PARKED
        assert filters.mobile_number == "900"
