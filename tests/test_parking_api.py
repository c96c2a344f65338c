# tests/test_parking_api.py
"""Unit tests for the remote parking API client (httpx MockTransport)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import pytest
import httpx
from urllib.parse import parse_qs
from parking_desk.exceptions import ConflictError, InvalidCodeError, ServiceError
from parking_desk.schemas.vehicle import VehicleFilters, VehicleRegistration, VehicleStatus, ImageMode
from parking_desk.services.parking_api import OtpPurpose, ParkingApiClient

BASE_URL = "http://parking.test/api"


def form_of(request: httpx.Request) -> dict:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def make_client(handler, token="tok-123"):
    seen = []

    def recording(request):
        seen.append(request)
        return handler(request)

    client = ParkingApiClient(base_url=BASE_URL, token=token, transport=httpx.MockTransport(recording))
    return client, seen


def ok(data=None):
    return httpx.Response(200, json={"success": True, "data": data})


class TestVehicles:
    @pytest.mark.asyncio
    async def test_list_vehicles_sends_filters_as_query(self):
        client, seen = make_client(lambda r: ok([
            {"id": 12, "vehicle_number": "KA01AB1234", "mobile_number": 9000000001, "status": "parked",
             "registered_at": "2026-10-01T08:00:00Z", "discharged_at": ""},
        ]))
        async with client:
            vehicles = await client.list_vehicles(VehicleFilters(status=VehicleStatus.PARKED, vehicle_number="KA01"))

        params = seen[0].url.params
        assert seen[0].method == "GET"
        assert params["action"] == "listVehicles"
        assert params["status"] == "parked"
        assert params["vehicle_number"] == "KA01"
        assert "mobile_number" not in params
        assert vehicles[0].id == "12"
        assert vehicles[0].mobile_number == "9000000001"
        assert vehicles[0].discharged_at is None

    @pytest.mark.asyncio
    async def test_discharge_sends_one_form_post(self):
        client, seen = make_client(lambda r: ok({"dischargedCount": 3}))
        async with client:
            result = await client.discharge_vehicles(["1", "2", "3"], "otp")

        form = form_of(seen[0])
        assert seen[0].method == "POST"
        assert form["action"] == "dischargeVehicle"
        assert json.loads(form["id"]) == ["1", "2", "3"]
        assert form["verification_method"] == "otp"
        assert form["token"] == "tok-123"
        assert "allow_duplicate" not in form
        assert seen[0].headers["Authorization"] == "Bearer tok-123"
        assert result.count == 3

    @pytest.mark.asyncio
    async def test_discharge_override_flag(self):
        client, seen = make_client(lambda r: ok({}))
        async with client:
            result = await client.discharge_vehicles(["1"], "manual", "https://img/p.jpg", allow_duplicate=True)

        form = form_of(seen[0])
        assert form["allow_duplicate"] == "true"
        assert form["discharge_image_url"] == "https://img/p.jpg"
        assert result.count == 1

    @pytest.mark.asyncio
    async def test_bulk_registration_form(self):
        client, seen = make_client(lambda r: ok({"ids": [41, 42], "count": 2}))
        registration = VehicleRegistration(
            vehicle_numbers=["KA01AB1234", " ", "KA01AB5678"], mobile_number="9000000001",
            token_number="TK1", image_mode=ImageMode.SINGLE, vehicle_image_url="https://img/v.jpg",
        )
        async with client:
            result = await client.register_vehicle(registration, "image")

        form = form_of(seen[0])
        assert json.loads(form["vehicle_numbers"]) == ["KA01AB1234", "KA01AB5678"]
        assert json.loads(form["vehicle_image_urls"]) == ["https://img/v.jpg", "https://img/v.jpg"]
        assert form["status"] == "parked"
        assert form["verification_method"] == "image"
        assert result.vehicle_ids == ["41", "42"]
        assert result.token_number == "TK1"

    def test_blank_row_keeps_per_vehicle_images_aligned(self):
        registration = VehicleRegistration(
            vehicle_numbers=["A1", "", "B2"], mobile_number="9000000001",
            image_mode="multiple", vehicle_image_urls=["u-A1", "u-blank", "u-B2"],
        )
        form = registration.to_form()
        assert form["vehicle_numbers"] == ["A1", "B2"]
        assert form["vehicle_image_urls"] == ["u-A1", "u-B2"]


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_duplicate_token_becomes_conflict(self):
        client, _ = make_client(lambda r: httpx.Response(200, json={
            "success": False,
            "error": {"message": "Token TK1 already in use", "code": "DUPLICATE_TOKEN",
                      "conflicts": [{"id": "9", "vehicle_number": "KA01ZZ0001"}]},
        }))
        async with client:
            with pytest.raises(ConflictError) as exc:
                await client.discharge_vehicles(["1"], "manual")

        assert exc.value.code == "DUPLICATE_TOKEN"
        assert exc.value.conflicts[0]["vehicle_number"] == "KA01ZZ0001"
        assert exc.value.message == "Token TK1 already in use"

    @pytest.mark.asyncio
    async def test_conflict_without_code(self):
        client, _ = make_client(lambda r: httpx.Response(409, json={
            "success": False, "error": {"message": "Duplicate"}, "data": {"conflicts": [{"id": "3"}]},
        }))
        async with client:
            with pytest.raises(ConflictError):
                await client.discharge_vehicles(["1"], "manual")

    @pytest.mark.asyncio
    async def test_rejected_otp_is_invalid_code(self):
        client, _ = make_client(lambda r: httpx.Response(200, json={
            "success": False, "error": {"message": "Invalid OTP"},
        }))
        async with client:
            with pytest.raises(InvalidCodeError):
                await client.verify_otp("9000000001", "000000", OtpPurpose.DISCHARGE)

    @pytest.mark.asyncio
    async def test_generic_rejection_is_service_error(self):
        client, _ = make_client(lambda r: httpx.Response(200, json={
            "success": False, "error": {"message": "Vehicle already discharged"},
        }))
        async with client:
            with pytest.raises(ServiceError) as exc:
                await client.discharge_vehicles(["1"], "manual")
        assert exc.value.message == "Vehicle already discharged"

    @pytest.mark.asyncio
    async def test_html_body_is_service_error(self):
        client, _ = make_client(lambda r: httpx.Response(200, content=b"<!DOCTYPE html><html>login</html>"))
        async with client:
            with pytest.raises(ServiceError) as exc:
                await client.list_vehicles()
        assert exc.value.code == "INVALID_RESPONSE"

    @pytest.mark.asyncio
    async def test_server_error(self):
        client, _ = make_client(lambda r: httpx.Response(503, text="unavailable"))
        async with client:
            with pytest.raises(ServiceError) as exc:
                await client.list_vehicles()
        assert exc.value.code == "HTTP_503"
        assert exc.value.status_code == 502

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = make_client(refuse)
        async with client:
            with pytest.raises(ServiceError) as exc:
                await client.send_otp("9000000001", OtpPurpose.DISCHARGE)
        assert exc.value.code == "NETWORK_ERROR"

    @pytest.mark.asyncio
    async def test_missing_token_fails_before_request(self):
        client, seen = make_client(lambda r: ok({}), token="")
        async with client:
            with pytest.raises(ServiceError) as exc:
                await client.discharge_vehicles(["1"], "manual")
        assert exc.value.code == "UNAUTHORIZED"
        assert seen == []


class TestAccounts:
    @pytest.mark.asyncio
    async def test_login_stores_token(self):
        client, seen = make_client(lambda r: ok({"token": "fresh", "user": {"email": "op@desk.test"}}), token="")
        async with client:
            await client.login("op@desk.test", "secret")
            await client.list_employees()

        assert client.token == "fresh"
        assert seen[1].url.params["token"] == "fresh"

    @pytest.mark.asyncio
    async def test_logout_clears_token_even_on_failure(self):
        client, _ = make_client(lambda r: httpx.Response(502, text="bad gateway"))
        async with client:
            await client.logout()
        assert client.token is None

    @pytest.mark.asyncio
    async def test_generate_token_number(self):
        client, _ = make_client(lambda r: ok({"token_number": "TK42"}))
        async with client:
            assert await client.generate_token_number() == "TK42"
