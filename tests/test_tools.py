"""Tests for the bundled tools, dispatched through FunctionLibrary."""

import asyncio
import json
import threading
from pathlib import Path

import httpx
import pytest

from statsbridge.config import ProxyConfig
from statsbridge.diffpatch import PatchResult
from statsbridge.tooling import REGISTRY, ToolError
from statsbridge.tools import kpm

EXPECTED_TOOLS = {
    "readKpmLogs",
    "readKpmLogFile",
    "getGarminUserSummary",
    "getGarminSteps",
    "getGarminHeartRate",
    "getGarminSleep",
    "getGarminBodyBattery",
    "getGarminHeartRateRange",
    "listDatabaseFiles",
    "readDatabaseFile",
    "createDatabaseFile",
    "patchDatabaseFile",
}


def test_all_tools_registered(make_library):
    make_library()
    assert EXPECTED_TOOLS <= set(REGISTRY.names)


def test_schemas_use_camel_case(make_library):
    library = make_library()
    schema = library.get("getGarminBodyBattery").schema

    params = schema["function"]["parameters"]
    assert schema["function"]["description"] == "Get body battery data for a date range from Garmin Connect"
    assert set(params["properties"]) == {"startDate", "endDate"}
    assert params["required"] == ["startDate"]


def test_patch_schema_describes_diff_tuples(make_library):
    schema = make_library().get("patchDatabaseFile").schema
    params = schema["function"]["parameters"]

    assert params["required"] == ["filename", "diffContent"]
    diff_content = params["properties"]["diffContent"]
    assert diff_content["type"] == "array"
    assert diff_content["minItems"] == 1
    assert diff_content["items"]["prefixItems"][0]["enum"] == [-1, 0, 1]
    assert "diff tuples" in diff_content["description"]
    assert params["properties"]["dryRun"]["default"] is False


class TestKpmTools:
    @pytest.mark.asyncio
    async def test_read_kpm_logs_posts_max_lines(self, make_library, backend):
        backend.route("POST", "/read-logs", httpx.Response(200, text="time,kpm\n1,42\n"))
        library = make_library()

        result = await library.dispatch("readKpmLogs", {"maxLines": 10})

        assert result == "time,kpm\n1,42\n"
        assert backend.body() == {"max_lines": 10}

    @pytest.mark.asyncio
    async def test_read_kpm_logs_without_limit_sends_empty_body(self, make_library, backend):
        backend.route("POST", "/read-logs", httpx.Response(200, text="all"))

        await make_library().dispatch("readKpmLogs", {})

        assert backend.body() == {}

    @pytest.mark.asyncio
    async def test_read_kpm_logs_backend_failure(self, make_library, backend):
        backend.route("POST", "/read-logs", httpx.Response(500, text="log file missing"))

        result = await make_library().dispatch("readKpmLogs", {})

        assert isinstance(result, ToolError)
        assert result.kind == "ToolActionError"
        assert result.error == "Error reading KPM logs: HTTP error! status: 500, message: log file missing"

    def test_kpm_progress_message(self, make_library):
        library = make_library()

        assert library.format_message("readKpmLogs", {"maxLines": 5}) == "Reading KPM logs (last 5 lines)"
        assert library.format_message("readKpmLogs", {}) == "Reading KPM logs"

    @pytest.mark.asyncio
    async def test_kpm_log_file_unavailable_without_file(self, make_library, tmp_path: Path):
        library = make_library(ProxyConfig(kpm_log_path=tmp_path / "missing.csv"))

        result = await library.dispatch("readKpmLogFile", {})

        assert isinstance(result, ToolError)
        assert result.kind == "ToolUnavailableError"
        assert "readKpmLogFile" not in {s["function"]["name"] for s in library.get_schemas()}

    @pytest.mark.asyncio
    async def test_kpm_log_file_tail(self, make_library, tmp_path: Path):
        log = tmp_path / "kpm.csv"
        log.write_text("time,kpm\n1,10\n2,20\n3,30\n")
        library = make_library(ProxyConfig(kpm_log_path=log))

        assert await library.dispatch("readKpmLogFile", {"maxLines": 2}) == "2,20\n3,30\n"
        assert await library.dispatch("readKpmLogFile", {}) == log.read_text()

    @pytest.mark.asyncio
    async def test_kpm_log_file_read_in_worker_thread(self, make_library, tmp_path: Path, monkeypatch):
        log = tmp_path / "kpm.csv"
        log.write_text("1,10\n")
        threads = []
        read_tail = kpm._read_tail

        def recording_read_tail(path, max_lines):
            threads.append(threading.get_ident())
            return read_tail(path, max_lines)

        monkeypatch.setattr(kpm, "_read_tail", recording_read_tail)

        result = await make_library(ProxyConfig(kpm_log_path=log)).dispatch("readKpmLogFile", {})

        assert result == "1,10\n"
        assert threads
        assert threading.get_ident() not in threads

    @pytest.mark.asyncio
    async def test_kpm_log_file_rejects_non_positive_limit(self, make_library, tmp_path: Path):
        log = tmp_path / "kpm.csv"
        log.write_text("x\n")
        library = make_library(ProxyConfig(kpm_log_path=log))

        result = await library.dispatch("readKpmLogFile", {"maxLines": 0})

        assert result.kind == "ToolArgumentError"
        assert result.field_path == "maxLines"


class TestGarminTools:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,path",
        [
            ("getGarminUserSummary", "/garmin/user-summary"),
            ("getGarminSteps", "/garmin/steps"),
            ("getGarminHeartRate", "/garmin/heart-rate"),
            ("getGarminSleep", "/garmin/sleep"),
        ],
    )
    async def test_daily_tools_post_without_body(self, make_library, backend, name, path):
        backend.route("POST", path, httpx.Response(200, json={"value": 1}))

        result = await make_library(ProxyConfig(api_port=8765)).dispatch(name, {})

        assert result == {"value": 1}
        request = backend.requests[0]
        assert request.url == f"http://localhost:8765{path}"
        assert request.content == b""

    @pytest.mark.asyncio
    async def test_body_battery_translates_field_names(self, make_library, backend):
        backend.route("POST", "/garmin/body-battery", httpx.Response(200, json=[{"charged": 40}]))

        result = await make_library().dispatch(
            "getGarminBodyBattery", {"startDate": "2024-05-01", "endDate": "2024-05-03"}
        )

        assert result == [{"charged": 40}]
        assert backend.body() == {"start_date": "2024-05-01", "end_date": "2024-05-03"}

    @pytest.mark.asyncio
    async def test_heart_rate_range_omits_missing_end_date(self, make_library, backend):
        backend.route("POST", "/garmin/heart-rate-within-date-range", httpx.Response(200, json={}))

        await make_library().dispatch("getGarminHeartRateRange", {"startDate": "2024-05-01"})

        assert backend.body() == {"start_date": "2024-05-01"}

    @pytest.mark.asyncio
    async def test_missing_start_date_never_calls_backend(self, make_library, backend):
        result = await make_library().dispatch("getGarminBodyBattery", {"endDate": "2024-05-03"})

        assert isinstance(result, ToolError)
        assert result.kind == "ToolArgumentError"
        assert result.field_path == "startDate"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_date_pattern_enforced(self, make_library, backend):
        result = await make_library().dispatch("getGarminBodyBattery", {"startDate": "May 1st"})

        assert result.kind == "ToolArgumentError"
        assert result.field_path == "startDate"
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_connection_failure_is_reported(self, make_library, backend):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        backend.route("POST", "/garmin/steps", refuse)

        result = await make_library().dispatch("getGarminSteps", {})

        assert isinstance(result, ToolError)
        assert result.error == "Error fetching Garmin steps data: Connection refused"

    def test_range_progress_messages(self, make_library):
        library = make_library()

        assert (
            library.format_message("getGarminBodyBattery", {"startDate": "2024-05-01", "endDate": "2024-05-03"})
            == "Fetching Garmin body battery data from 2024-05-01 to 2024-05-03"
        )
        assert (
            library.format_message("getGarminHeartRateRange", {"startDate": "2024-05-01"})
            == "Fetching Garmin heart rate data from 2024-05-01"
        )
        assert library.format_message("getGarminSleep", {}) == "Fetching Garmin sleep data"

    def test_progress_message_degrades_on_bad_arguments(self, make_library):
        assert make_library().format_message("getGarminBodyBattery", {}) == "Running getGarminBodyBattery"


class TestDatabaseToolsLocal:
    """Database tools against a local database root."""

    @pytest.mark.asyncio
    async def test_list_read_create(self, make_library, database_root: Path):
        library = make_library(ProxyConfig(database_root=database_root))

        created = await library.dispatch("createDatabaseFile", {"filename": "a.txt", "content": "hello"})
        listed = await library.dispatch("listDatabaseFiles", {})
        read = await library.dispatch("readDatabaseFile", {"filename": "a.txt"})

        assert created == {"filename": "a.txt", "created": True}
        assert listed == ["a.txt"]
        assert read == "hello"

    @pytest.mark.asyncio
    async def test_create_outside_root_fails(self, make_library, database_root: Path):
        library = make_library(ProxyConfig(database_root=database_root))

        result = await library.dispatch("createDatabaseFile", {"filename": "../x.txt", "content": "x"})

        assert isinstance(result, ToolError)
        assert result.error.startswith("Error creating database file: ")
        assert not (database_root.parent / "x.txt").exists()

    @pytest.mark.asyncio
    async def test_patch_applies_and_persists(self, make_library, database_root: Path):
        (database_root / "a.txt").write_text("foo bar")
        library = make_library(ProxyConfig(database_root=database_root))

        result = await library.dispatch(
            "patchDatabaseFile",
            {"filename": "a.txt", "diffContent": [[0, "foo "], [-1, "bar"], [1, "baz"]]},
        )

        assert isinstance(result, PatchResult)
        assert result.applied is True
        assert result.result_document == "foo baz"
        assert (database_root / "a.txt").read_text() == "foo baz"

    @pytest.mark.asyncio
    async def test_patch_dry_run_leaves_file_untouched(self, make_library, database_root: Path):
        (database_root / "a.txt").write_text("foo bar")
        library = make_library(ProxyConfig(database_root=database_root))
        args = {"filename": "a.txt", "diffContent": [[0, "foo "], [-1, "bar"], [1, "baz"]], "dryRun": True}

        first = await library.dispatch("patchDatabaseFile", args)
        second = await library.dispatch("patchDatabaseFile", args)

        assert first == second
        assert first.applied is False
        assert first.result_document == "foo baz"
        assert len(first.preview) == 3
        assert (database_root / "a.txt").read_text() == "foo bar"

    @pytest.mark.asyncio
    async def test_patch_mismatch_reported(self, make_library, database_root: Path):
        (database_root / "a.txt").write_text("hello world")
        library = make_library(ProxyConfig(database_root=database_root))

        result = await library.dispatch(
            "patchDatabaseFile", {"filename": "a.txt", "diffContent": [[0, "hellx"], [0, " world"]]}
        )

        assert isinstance(result, ToolError)
        assert result.kind == "ToolActionError"
        assert result.details == {"type": "PatchMismatchError"}
        assert result.error.startswith("Error patching database file: Op 0 does not match")
        assert (database_root / "a.txt").read_text() == "hello world"

    @pytest.mark.asyncio
    async def test_patch_incomplete_strict_and_lenient(self, make_library, database_root: Path):
        (database_root / "a.txt").write_text("abcdef")
        args = {"filename": "a.txt", "diffContent": [[0, "abc"], [1, "X"]]}

        strict = await make_library(ProxyConfig(database_root=database_root)).dispatch("patchDatabaseFile", args)
        lenient = await make_library(
            ProxyConfig(database_root=database_root, strict_patches=False)
        ).dispatch("patchDatabaseFile", args)

        assert strict.details == {"type": "PatchIncompleteError"}
        assert lenient.result_document == "abcXdef"
        assert (database_root / "a.txt").read_text() == "abcXdef"

    @pytest.mark.asyncio
    async def test_patch_rejects_invalid_kind_before_reading(self, make_library, database_root: Path):
        library = make_library(ProxyConfig(database_root=database_root))

        result = await library.dispatch("patchDatabaseFile", {"filename": "missing.txt", "diffContent": [[2, "x"]]})

        assert result.kind == "ToolArgumentError"
        assert result.field_path == "diffContent.0.0"

    @pytest.mark.asyncio
    async def test_patch_rejects_boolean_kinds(self, make_library, database_root: Path):
        (database_root / "a.txt").write_text("x")
        library = make_library(ProxyConfig(database_root=database_root))

        result = await library.dispatch(
            "patchDatabaseFile", {"filename": "a.txt", "diffContent": [[False, "x"], [True, "y"]]}
        )

        assert isinstance(result, ToolError)
        assert result.kind == "ToolArgumentError"
        assert result.field_path == "diffContent.0.0"
        assert (database_root / "a.txt").read_text() == "x"

    @pytest.mark.asyncio
    async def test_patch_rejects_empty_diff(self, make_library, database_root: Path):
        library = make_library(ProxyConfig(database_root=database_root))

        result = await library.dispatch("patchDatabaseFile", {"filename": "a.txt", "diffContent": []})

        assert result.kind == "ToolArgumentError"
        assert result.field_path == "diffContent"

    def test_patch_progress_message(self, make_library):
        library = make_library()

        assert library.format_message("patchDatabaseFile", {"filename": "a.txt"}) == "Patching database file: a.txt"
        assert (
            library.format_message("patchDatabaseFile", {"filename": "a.txt", "dryRun": True})
            == "Dry run: Patching database file: a.txt"
        )


class TestDatabaseToolsHttp:
    """Database tools against the backend's /database endpoints."""

    @pytest.mark.asyncio
    async def test_patch_reads_then_commits(self, make_library, backend):
        backend.route("POST", "/database/read-file", httpx.Response(200, text="foo bar"))
        backend.route("POST", "/database/patch-file", httpx.Response(200, json={"status": "ok"}))

        result = await make_library().dispatch(
            "patchDatabaseFile",
            {"filename": "a.txt", "diffContent": [[0, "foo "], [-1, "bar"], [1, "baz"]]},
        )

        assert result.applied is True
        assert result.result_document == "foo baz"
        assert [r.url.path for r in backend.requests] == ["/database/read-file", "/database/patch-file"]
        assert json.loads(backend.requests[1].content) == {
            "filename": "a.txt",
            "diff_content": [[0, "foo "], [-1, "bar"], [1, "baz"]],
            "dry_run": False,
        }

    @pytest.mark.asyncio
    async def test_patch_dry_run_only_reads(self, make_library, backend):
        backend.route("POST", "/database/read-file", httpx.Response(200, text="foo bar"))

        result = await make_library().dispatch(
            "patchDatabaseFile",
            {"filename": "a.txt", "diffContent": [[0, "foo bar"], [1, "!"]], "dryRun": True},
        )

        assert result.result_document == "foo bar!"
        assert [r.url.path for r in backend.requests] == ["/database/read-file"]

    @pytest.mark.asyncio
    async def test_read_failure_message(self, make_library, backend):
        backend.route("POST", "/database/read-file", httpx.Response(400, text="File outside database"))

        result = await make_library().dispatch("readDatabaseFile", {"filename": "../etc"})

        assert result.error == (
            "Error reading database file: HTTP error! status: 400, message: File outside database"
        )


class TestConcurrentDispatch:
    @pytest.mark.asyncio
    async def test_gathered_calls_stay_independent(self, make_library, backend, database_root: Path):
        def echo_limit(request):
            return httpx.Response(200, text=f"last {json.loads(request.content)['max_lines']} lines")

        backend.route("POST", "/read-logs", echo_limit)
        backend.route("POST", "/garmin/steps", httpx.Response(500, text="rate limited"))
        (database_root / "a.txt").write_text("foo bar")
        library = make_library(ProxyConfig(database_root=database_root))

        results = await asyncio.gather(
            library.dispatch("readKpmLogs", {"maxLines": 10}),
            library.dispatch("getGarminSteps", {}),
            library.dispatch("readKpmLogs", {"maxLines": 20}),
            library.dispatch("readDatabaseFile", {"filename": "a.txt"}),
            library.dispatch("readKpmLogs", {"maxLines": 0}),
        )

        assert results[0] == "last 10 lines"
        assert results[1].error == "Error fetching Garmin steps data: HTTP error! status: 500, message: rate limited"
        assert results[2] == "last 20 lines"
        assert results[3] == "foo bar"
        assert results[4].kind == "ToolArgumentError"

        kpm_bodies = sorted(
            json.loads(request.content)["max_lines"] for request in backend.requests if request.url.path == "/read-logs"
        )
        assert kpm_bodies == [10, 20]
