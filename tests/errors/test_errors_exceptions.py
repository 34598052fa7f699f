import unittest

from routinesync.errors.exceptions import (
    AuthorizationError,
    ConflictError,
    HttpErrorInfo,
    NetworkUnavailableError,
    NotFoundError,
    PartialSyncFailure,
    RemoteRejectedError,
    RoutineSyncError,
    is_transient_status,
    map_http_error,
)


class TestExceptions(unittest.TestCase):
    def test_base_error_keeps_details_and_cause(self) -> None:
        cause = RuntimeError("root")
        err = RoutineSyncError("msg", details={"k": "v"}, cause=cause)
        self.assertEqual(str(err), "msg")
        self.assertEqual(err.details["k"], "v")
        self.assertIs(err.cause, cause)

    def test_details_default_to_empty_dict(self) -> None:
        self.assertEqual(RoutineSyncError("msg").details, {})

    def test_partial_sync_failure_carries_action_ids(self) -> None:
        err = PartialSyncFailure("2 failed", failed_action_ids=["a", "b"])
        self.assertEqual(err.failed_action_ids, ["a", "b"])
        self.assertIsInstance(err, RoutineSyncError)

    def test_remote_rejections_share_a_base(self) -> None:
        for cls in (AuthorizationError, NotFoundError, ConflictError):
            self.assertTrue(issubclass(cls, RemoteRejectedError))

    def test_map_http_error_basic(self) -> None:
        err = map_http_error(HttpErrorInfo(status_code=404, message="not found"))
        self.assertIsInstance(err, NotFoundError)

        err = map_http_error(HttpErrorInfo(status_code=400, message="bad req"))
        self.assertIs(type(err), RemoteRejectedError)

        err = map_http_error(HttpErrorInfo(status_code=409, message="conflict"))
        self.assertIsInstance(err, ConflictError)

        err = map_http_error(HttpErrorInfo(status_code=401, message="auth"))
        self.assertIsInstance(err, AuthorizationError)

        err = map_http_error(HttpErrorInfo(status_code=403, message="forbidden"))
        self.assertIsInstance(err, AuthorizationError)

    def test_map_http_error_transient_is_network_unavailable(self) -> None:
        for status in (0, 408, 429, 500, 503):
            err = map_http_error(HttpErrorInfo(status_code=status))
            self.assertIsInstance(err, NetworkUnavailableError, status)

    def test_map_http_error_keeps_status_and_extra_details(self) -> None:
        err = map_http_error(
            HttpErrorInfo(status_code=422, reason="Unprocessable", details={"code": "23505"})
        )
        self.assertEqual(err.details["status_code"], 422)
        self.assertEqual(err.details["code"], "23505")
        self.assertEqual(str(err), "HTTP error 422")

    def test_is_transient_status(self) -> None:
        self.assertTrue(is_transient_status(502))
        self.assertTrue(is_transient_status(429))
        self.assertFalse(is_transient_status(404))
        self.assertFalse(is_transient_status(600))


if __name__ == "__main__":
    unittest.main()
