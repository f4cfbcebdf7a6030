"""Tests for the queueing provider client and payload translation."""

from __future__ import annotations

import json

import httpx
import pytest

from chiroport.schemas import IntakeSubmission
from chiroport.services.waitwhile import (
    FIELD_AILMENT,
    FIELD_CONSENT,
    FIELD_DATE_OF_BIRTH,
    FIELD_NOTES,
    MEMBER_SERVICE_ID,
    MEMBER_WITH_ADJUSTMENT_SERVICE_ID,
    SERVICE_IDS,
    UNDECIDED_SERVICE_ID,
    QueueProviderError,
    QueueProviderNotConfiguredError,
    QueueProviderNotFoundError,
    build_visit_payload,
    normalize_birthday,
    normalize_phone,
)
from helpers import make_waitwhile_client, submission_json, visit_json


def _fields(payload: dict) -> dict[str, list[str]]:
    return {field["id"]: field["values"] for field in payload["dataFields"]}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("(555) 123-4567", "+15551234567"),
        ("15551234567", "+15551234567"),
        ("+44 20 7946 0958", "+442079460958"),
    ],
)
def test_normalize_phone(raw: str, expected: str) -> None:
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("4/2/1990", "1990-04-02"), ("12/31/1985", "1985-12-31"), ("1990-04-02", "1990-04-02"), (None, "")],
)
def test_normalize_birthday(raw: str | None, expected: str) -> None:
    assert normalize_birthday(raw) == expected


def test_payload_for_treatment_selection() -> None:
    submission = IntakeSubmission.model_validate(submission_json(additionalInfo="  Stiff neck  "))
    payload = build_visit_payload(submission)

    assert payload["locationId"] == "location-1"
    assert payload["phone"] == "+15551234567"
    assert payload["state"] == "WAITING"
    assert payload["serviceIds"] == [SERVICE_IDS["Body on the Go"]]
    fields = _fields(payload)
    assert fields[FIELD_AILMENT] == ["Body on the Go"]
    assert fields[FIELD_DATE_OF_BIRTH] == ["1988-04-12"]
    assert fields[FIELD_CONSENT] == ["Yes"]
    assert fields[FIELD_NOTES] == ["Stiff neck"]


def test_payload_omits_blank_notes_and_unknown_treatment_falls_back() -> None:
    submission = IntakeSubmission.model_validate(
        submission_json(selectedTreatment={"title": "Mystery Therapy"})
    )
    payload = build_visit_payload(submission)

    assert payload["serviceIds"] == [UNDECIDED_SERVICE_ID]
    assert FIELD_NOTES not in _fields(payload)


@pytest.mark.parametrize(
    ("spinal", "service_id", "ailment"),
    [
        (True, MEMBER_WITH_ADJUSTMENT_SERVICE_ID, "Priority Pass + Body on the Go"),
        (False, MEMBER_SERVICE_ID, "Priority Pass & Lounge Key Members"),
        (None, MEMBER_SERVICE_ID, "Priority Pass & Lounge Key Members"),
    ],
)
def test_payload_for_members(spinal: bool | None, service_id: str, ailment: str) -> None:
    submission = IntakeSubmission.model_validate(
        submission_json(selectedTreatment=None, spinalAdjustment=spinal)
    )
    payload = build_visit_payload(submission)

    assert payload["serviceIds"] == [service_id]
    assert _fields(payload)[FIELD_AILMENT] == [ailment]


def test_service_label_overrides_ailment() -> None:
    submission = IntakeSubmission.model_validate(submission_json(serviceLabel="Chiropractor"))
    assert _fields(build_visit_payload(submission))[FIELD_AILMENT] == ["Chiropractor"]


@pytest.mark.asyncio
async def test_create_visit_sends_authenticated_request() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=visit_json())

    client = make_waitwhile_client(handler)
    try:
        visit = await client.create_visit(IntakeSubmission.model_validate(submission_json()))
    finally:
        await client.close()

    assert seen["method"] == "POST"
    assert seen["url"] == "https://waitwhile.test/v2/visits"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["name"] == "Jane Traveler"
    assert visit.id == "visit-123"
    assert visit.queue_position == 3


@pytest.mark.asyncio
async def test_get_visit_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": {"code": "404", "message": "Visit missing"}})

    client = make_waitwhile_client(handler)
    with pytest.raises(QueueProviderNotFoundError) as excinfo:
        await client.get_visit("does-not-exist")
    await client.close()

    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Visit missing"


@pytest.mark.asyncio
async def test_provider_error_body_is_normalized() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            422,
            json={"error": {"code": "INVALID_PHONE", "message": "Bad phone", "details": {"field": "phone"}}},
        )

    client = make_waitwhile_client(handler)
    with pytest.raises(QueueProviderError) as excinfo:
        await client.get_visit("visit-1")
    await client.close()

    assert excinfo.value.code == "INVALID_PHONE"
    assert excinfo.value.details == {"field": "phone"}
    assert not isinstance(excinfo.value, QueueProviderNotFoundError)


@pytest.mark.asyncio
@pytest.mark.parametrize("error_cls", [httpx.ConnectError, httpx.ReadTimeout])
async def test_transport_failure_is_network_error(error_cls: type[httpx.TransportError]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise error_cls("refused", request=request)

    client = make_waitwhile_client(handler)
    with pytest.raises(QueueProviderError) as excinfo:
        await client.get_visit("visit-1")
    await client.close()

    assert excinfo.value.code == "NETWORK_ERROR"


@pytest.mark.asyncio
async def test_unconfigured_client_refuses_calls() -> None:
    client = make_waitwhile_client(lambda request: httpx.Response(200), api_key=None)
    assert not client.configured
    with pytest.raises(QueueProviderNotConfiguredError):
        await client.get_visit("visit-1")


@pytest.mark.asyncio
async def test_visit_id_is_path_escaped() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.raw_path.decode())
        return httpx.Response(200, json=visit_json(id="a/b"))

    client = make_waitwhile_client(handler)
    await client.get_visit("a/b")
    await client.close()

    assert paths == ["/v2/visits/a%2Fb"]
