import json
import unittest
from typing import Any, Optional

import requests

from routinesync.controller import RemoteDataService, RestRoutineController
from routinesync.controller.fields import CLIENT_REF_COLUMN, ROUTINES_TABLE, SLOTS_TABLE
from routinesync.errors import (
    AuthorizationError,
    NetworkUnavailableError,
    NotFoundError,
    RemoteRejectedError,
)
from routinesync.models import RoutineInput, SlotInput

BASE = "https://example.supabase.co"

ROW = {
    "id": "R1",
    "name": "Fall",
    "semester": "Fall 2025",
    "description": None,
    "is_active": True,
    "created_at": "2025-01-01T00:00:00Z",
    "created_by": "u1",
    "slots": [
        {
            "id": "S1",
            "routine_id": "R1",
            "day_of_week": "Monday",
            "start_time": "09:00",
            "end_time": "10:00",
            "created_at": "2025-01-01T00:00:00Z",
        }
    ],
}


class FakeResponse:
    def __init__(self, status_code: int, payload: Any = None, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self.content = b"" if payload is None else json.dumps(payload).encode("utf-8")

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class FakeSession:
    def __init__(self, *responses: Any) -> None:
        self.headers: dict[str, str] = {}
        self.calls: list[dict[str, Any]] = []
        self._responses = list(responses)
        self.closed = False

    def _next(self) -> Any:
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self._next()

    def get(self, url: str, **kwargs: Any) -> Any:
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return self._next()

    def close(self) -> None:
        self.closed = True


def _controller(session: FakeSession, **kwargs: Any) -> RestRoutineController:
    return RestRoutineController(
        BASE,
        api_key="anon-key",
        session=session,  # type: ignore[arg-type]
        initial_delay_sec=0.0,
        **kwargs,
    )


class TestRestRoutineController(unittest.TestCase):
    def test_implements_protocol_and_sets_headers(self) -> None:
        session = FakeSession()
        controller = _controller(session, headers={"X-Client": "tests"})
        self.assertIsInstance(controller, RemoteDataService)
        self.assertEqual(session.headers["apikey"], "anon-key")
        self.assertEqual(session.headers["Authorization"], "Bearer anon-key")
        self.assertEqual(session.headers["X-Client"], "tests")

    def test_fetch_all_orders_newest_first(self) -> None:
        session = FakeSession(FakeResponse(200, [ROW]))
        routines = _controller(session).fetch_all_sync()

        self.assertEqual(routines[0].id, "R1")
        self.assertEqual(routines[0].slots[0].id, "S1")
        call = session.calls[0]
        self.assertEqual(call["url"], f"{BASE}/rest/v1/{ROUTINES_TABLE}")
        self.assertEqual(call["params"]["order"], "created_at.desc")

    def test_create_sends_client_ref_upsert(self) -> None:
        session = FakeSession(FakeResponse(201, [ROW]))
        routine = _controller(session).create_routine_sync(
            RoutineInput(name="Fall", semester="Fall 2025"), "key-1"
        )

        self.assertEqual(routine.id, "R1")
        call = session.calls[0]
        self.assertEqual(call["method"], "POST")
        self.assertEqual(call["json"][CLIENT_REF_COLUMN], "key-1")
        self.assertEqual(call["params"]["on_conflict"], CLIENT_REF_COLUMN)
        self.assertIn("ignore-duplicates", call["headers"]["Prefer"])

    def test_create_duplicate_falls_back_to_lookup(self) -> None:
        session = FakeSession(FakeResponse(201, []), FakeResponse(200, [ROW]))
        routine = _controller(session).create_routine_sync(
            RoutineInput(name="Fall", semester="Fall 2025"), "key-1"
        )

        self.assertEqual(routine.id, "R1")
        self.assertEqual(session.calls[1]["params"][CLIENT_REF_COLUMN], "eq.key-1")

    def test_update_without_row_is_not_found(self) -> None:
        session = FakeSession(FakeResponse(200, []))
        with self.assertRaises(NotFoundError):
            _controller(session).update_routine_sync("R404", {"name": "x"})

    def test_add_slot_targets_slot_table(self) -> None:
        session = FakeSession(FakeResponse(201, [ROW["slots"][0]]))
        slot = _controller(session).add_slot_sync(
            "R1", SlotInput(day_of_week="Monday", start_time="09:00", end_time="10:00"), "k"
        )

        self.assertEqual(slot.id, "S1")
        self.assertEqual(slot.routine_id, "R1")
        self.assertTrue(session.calls[0]["url"].endswith(SLOTS_TABLE))
        self.assertEqual(session.calls[0]["json"]["routine_id"], "R1")

    def test_delete_slot_filters_by_both_ids(self) -> None:
        session = FakeSession(FakeResponse(204))
        _controller(session).delete_slot_sync("R1", "S1")
        params = session.calls[0]["params"]
        self.assertEqual(params, {"id": "eq.S1", "routine_id": "eq.R1"})

    def test_http_errors_are_mapped(self) -> None:
        session = FakeSession(FakeResponse(403, {"message": "denied", "code": "42501"}))
        with self.assertRaises(AuthorizationError) as ctx:
            _controller(session).delete_routine_sync("R1")
        self.assertEqual(str(ctx.exception), "denied")
        self.assertEqual(ctx.exception.details["code"], "42501")

    def test_transient_failures_are_retried(self) -> None:
        session = FakeSession(
            requests.ConnectionError("reset"),
            FakeResponse(503),
            FakeResponse(200, [ROW]),
        )
        routines = _controller(session, max_retries=2).fetch_all_sync()
        self.assertEqual(len(routines), 1)
        self.assertEqual(len(session.calls), 3)

    def test_retries_exhausted_raise_network_unavailable(self) -> None:
        session = FakeSession(requests.Timeout("slow"), requests.Timeout("slow"))
        with self.assertRaises(NetworkUnavailableError):
            _controller(session, max_retries=1).fetch_all_sync()

    def test_rejections_are_not_retried(self) -> None:
        session = FakeSession(FakeResponse(400, {"message": "bad"}), FakeResponse(200, []))
        with self.assertRaises(RemoteRejectedError):
            _controller(session).delete_routine_sync("R1")
        self.assertEqual(len(session.calls), 1)

    def test_ping(self) -> None:
        self.assertTrue(_controller(FakeSession(FakeResponse(200, {}))).ping_sync())
        self.assertFalse(_controller(FakeSession(FakeResponse(502))).ping_sync())
        self.assertFalse(_controller(FakeSession(requests.ConnectionError("x"))).ping_sync())


class TestRestRoutineControllerAsync(unittest.IsolatedAsyncioTestCase):
    async def test_coroutines_run_blocking_calls(self) -> None:
        session = FakeSession(FakeResponse(200, [ROW]))
        routines = await _controller(session).fetch_all()
        self.assertEqual(routines[0].name, "Fall")

    async def test_close(self) -> None:
        session = FakeSession()
        _controller(session).close()
        self.assertTrue(session.closed)


if __name__ == "__main__":
    unittest.main()
