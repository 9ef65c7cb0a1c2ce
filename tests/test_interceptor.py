"""
Test 5: Fault interceptor (interceptor.py)

Tests the handling protocol for exceptions, runtime errors and shutdown
records: logging, normalization, request/response fallback and the
pipeline restart.
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from mistake.errors import NotFound, RuntimeErrorRecord
from mistake.http import Request, Response
from mistake.interceptor import InterceptorState, Mistake
from mistake.levels import ErrorLevel
from mistake.model import GENERIC_MESSAGE
from mistake.pipeline import Pipeline
from mistake.serializers import JsonSerializer
from mistake.testing import RecordingPipeline


@pytest.fixture
def log():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def pipeline():
    return RecordingPipeline()


@pytest.fixture
def mistake(pipeline, log):
    return Mistake(pipeline, logger=log)


def raise_and_catch(exc):
    try:
        raise exc
    except BaseException as caught:
        return caught


# ============================================================================
# Exceptions
# ============================================================================

class TestHandleException:

    def test_domain_error_end_to_end(self, mistake, pipeline):
        mistake.handle_exception(NotFound("User missing", 12, description="not found"))

        response = pipeline.invocations[0].response
        assert response.status == 404
        assert response.unserialized_body == {
            "errors": {"message": "User missing", "code": 12, "description": "not found"}
        }
        assert "link" not in response.unserialized_body["errors"]

    def test_unclassified_exception_is_masked(self, mistake, pipeline):
        mistake.handle_exception(raise_and_catch(ZeroDivisionError("division by zero")))

        response = pipeline.invocations[0].response
        assert response.status == 500
        assert response.unserialized_body["errors"]["message"] == GENERIC_MESSAGE
        assert "division by zero" not in json.dumps(response.unserialized_body)

    def test_restart_sequence(self, mistake, pipeline):
        mistake.handle_exception(ValueError("x"))
        assert pipeline.call_names == ["prepare_error_queue", "invoke"]

    def test_returns_pipeline_result(self, log):
        final = Response(b"done")
        engine = MagicMock()
        engine.return_value = final
        engine.latest_request = None
        engine.latest_response = None

        assert Mistake(engine, logger=log).handle_exception(ValueError()) is final
        engine.prepare_error_queue.assert_called_once_with()

    def test_logs_once(self, mistake, log):
        mistake.handle_exception(raise_and_catch(KeyError("k")))
        assert log.error.call_count == 1

    def test_log_message(self, mistake, log):
        exc = raise_and_catch(RuntimeError("disk full"))
        mistake.handle_exception(exc)

        message = log.error.call_args.args[0]
        assert message.startswith("Uncaught exception of type RuntimeError thrown in file ")
        assert __file__ in message
        assert message.endswith(' with message "disk full".')

        fault = log.error.call_args.kwargs["extra"]["fault"]
        assert fault["exception_file"] == __file__
        assert fault["exception_line"] == exc.__traceback__.tb_lineno
        assert "RuntimeError: disk full" in fault["exception_trace"]

    def test_log_message_without_text(self, mistake, log):
        mistake.handle_exception(ValueError())
        message = log.error.call_args.args[0]
        assert message == "Uncaught exception of type ValueError thrown in file unknown at line 0."

    def test_trace_includes_cause(self, mistake, log):
        try:
            try:
                raise OSError("socket closed")
            except OSError as inner:
                raise RuntimeError("fetch failed") from inner
        except RuntimeError as exc:
            mistake.handle_exception(exc)

        trace = log.error.call_args.kwargs["extra"]["fault"]["exception_trace"]
        assert "OSError: socket closed" in trace
        assert "RuntimeError: fetch failed" in trace

    def test_broken_logger_does_not_block_response(self, pipeline, capsys):
        logger = MagicMock(spec=logging.Logger)
        logger.error.side_effect = IOError("log sink down")

        Mistake(pipeline, logger=logger).handle_exception(ValueError("x"))

        assert len(pipeline.invocations) == 1
        assert "log sink down" in capsys.readouterr().err

    def test_logs_before_restart(self, log):
        order = []
        log.error.side_effect = lambda *a, **k: order.append("log")
        engine = RecordingPipeline()
        engine.prepare_error_queue = lambda: order.append("prepare")

        Mistake(engine, logger=log).handle_exception(ValueError())
        assert order == ["log", "prepare"]

    def test_idempotent_bodies(self, mistake, pipeline):
        err = NotFound("Missing", 9, description="not found")
        mistake.handle_exception(err)
        mistake.handle_exception(err)

        first, second = pipeline.invocations
        assert json.dumps(first.response.unserialized_body) == json.dumps(second.response.unserialized_body)
        assert first.response.status == second.response.status

    def test_without_pipeline_returns_composed(self, log):
        response = Mistake(logger=log).handle_exception(NotFound())
        assert response.status == 404
        assert response.unserialized_body == {"errors": {"message": "Not Found"}}


# ============================================================================
# Request / response fallback
# ============================================================================

class TestResolution:

    def test_prefers_latest(self, log):
        latest_request = Request(path="/latest")
        latest_response = Response(headers={"X-From": "latest"})
        pipeline = RecordingPipeline(latest_request, latest_response)
        mistake = Mistake(
            pipeline, logger=log, request=Request(path="/original"), response=Response(),
        )

        mistake.handle_exception(ValueError())

        call = pipeline.invocations[0]
        assert call.request is latest_request
        assert call.response.header("x-from") == "latest"

    def test_falls_back_to_original(self, pipeline, log):
        original_request = Request(path="/original")
        original_response = Response(headers={"X-From": "original"})
        mistake = Mistake(pipeline, logger=log, request=original_request, response=original_response)

        mistake.handle_exception(ValueError())

        call = pipeline.invocations[0]
        assert call.request is original_request
        assert call.response.header("x-from") == "original"

    def test_falls_back_to_defaults(self, mistake, pipeline):
        mistake.handle_exception(ValueError())

        call = pipeline.invocations[0]
        assert isinstance(call.request, Request)
        assert call.request.path == "/"
        assert isinstance(call.response, Response)

    def test_partial_output_discarded(self, log):
        pipeline = RecordingPipeline(latest_response=Response(b"<html>half", status=200))
        Mistake(pipeline, logger=log).handle_exception(ValueError())
        assert pipeline.invocations[0].response.content == b""


# ============================================================================
# Runtime errors & shutdown
# ============================================================================

class TestHandleError:

    def test_runtime_error_becomes_generic(self, mistake, pipeline):
        record = RuntimeErrorRecord(ErrorLevel.E_USER_WARNING, "careful", "app.py", 4)
        mistake.handle_error(record)

        response = pipeline.invocations[0].response
        assert response.status == 500
        assert response.unserialized_body == {"errors": {"message": GENERIC_MESSAGE}}

    def test_logs_rendered_message_once(self, mistake, log):
        record = RuntimeErrorRecord(
            ErrorLevel.E_DEPRECATED, "old api", "app.py", 4, context={"user": 1},
        )
        mistake.handle_error(record)

        assert log.error.call_count == 1
        message = log.error.call_args.args[0]
        assert message == (
            'Error of level E_DEPRECATED. Error message was "old api" in file app.py at line 4.'
        )
        fault = log.error.call_args.kwargs["extra"]["fault"]
        assert fault["label"] == "E_DEPRECATED"
        assert fault["context"] == {"user": 1}

    def test_unknown_level(self, mistake, log, pipeline):
        mistake.handle_error(RuntimeErrorRecord(3, "odd", "x.py", 1))
        assert "code of 3 passed" in log.error.call_args.args[0]
        assert len(pipeline.invocations) == 1

    def test_nested_runtime_error_only_logged(self, log):
        class WarningDuringRender(RecordingPipeline):
            def __call__(self, request, response):
                mistake.handle_error(RuntimeErrorRecord(ErrorLevel.E_NOTICE, "nested"))
                return super().__call__(request, response)

        pipeline = WarningDuringRender()
        mistake = Mistake(pipeline, logger=log)

        mistake.handle_exception(ValueError("outer"))

        assert log.error.call_count == 2
        assert len(pipeline.invocations) == 1
        assert mistake.state is InterceptorState.UNREGISTERED


class TestHandleShutdown:

    @pytest.mark.parametrize("level", [
        ErrorLevel.E_ERROR,
        ErrorLevel.E_USER_ERROR,
        ErrorLevel.E_COMPILE_ERROR,
        ErrorLevel.E_CORE_ERROR,
        ErrorLevel.E_PARSE,
    ])
    def test_fatal_record_handled(self, mistake, pipeline, log, level):
        mistake.handle_shutdown(RuntimeErrorRecord(level, "out of memory", "app.py", 9))
        assert log.error.call_count == 1
        assert pipeline.invocations[0].response.status == 500

    def test_fatal_record_message(self, mistake, log):
        mistake.handle_shutdown(RuntimeErrorRecord(ErrorLevel.E_ERROR, "oom", "a.py", 1))
        assert "Unknown error level, code of 1 passed" in log.error.call_args.args[0]

    def test_non_fatal_record_ignored(self, mistake, pipeline, log):
        assert mistake.handle_shutdown(RuntimeErrorRecord(ErrorLevel.E_WARNING, "w")) is None
        assert log.error.call_count == 0
        assert pipeline.calls == []

    def test_none_ignored(self, mistake, pipeline, log):
        assert mistake.handle_shutdown(None) is None
        assert log.error.call_count == 0
        assert pipeline.calls == []


# ============================================================================
# As a pipeline stage
# ============================================================================

class TestMistakeStage:

    def test_pass_through(self, log):
        mistake = Mistake(logger=log)
        request, response = Request(), Response()
        result = mistake(request, response, lambda req, resp: resp)
        assert result is response

    def test_end_to_end_through_pipeline(self, log):
        calls = []

        def router(request, response, next):
            calls.append("router")
            raise NotFound("No route", 404, description="not found")

        mistake = Mistake(logger=log)
        pipeline = Pipeline([mistake, JsonSerializer(), router])
        assert mistake.pipeline is pipeline

        result = pipeline(Request(path="/nope"), Response())

        assert result.status == 404
        assert json.loads(result.content) == {
            "errors": {"message": "No route", "code": 404, "description": "not found"}
        }
        assert calls == ["router"]
        assert pipeline.queue == ["Mistake", "JsonSerializer", "router"]
        assert not pipeline.error_mode
        assert log.error.call_count == 1

    def test_unclassified_through_pipeline(self, log):
        def handler(request, response, next):
            return 1 / 0

        pipeline = Pipeline([Mistake(logger=log), JsonSerializer(), handler])
        result = pipeline(Request(), Response())

        assert result.status == 500
        assert json.loads(result.content) == {"errors": {"message": GENERIC_MESSAGE}}

    def test_error_queue_failure_propagates(self, log):
        class BrokenRenderer:
            error_stage = True

            def __call__(self, request, response, next):
                response = next(request, response)
                if response.status >= 400:
                    raise RuntimeError("renderer broke")
                return response

        def handler(request, response, next):
            raise ValueError("app broke")

        pipeline = Pipeline([Mistake(logger=log), BrokenRenderer(), handler])

        with pytest.raises(RuntimeError, match="renderer broke"):
            pipeline(Request(), Response())
        assert log.error.call_count == 1

    def test_next_request_runs_full_queue(self, log):
        seen = []

        def router(request, response, next):
            seen.append(request.path)
            if request.path == "/boom":
                raise ZeroDivisionError("division by zero")
            return response.with_unserialized_body({"ok": True})

        pipeline = Pipeline([Mistake(logger=log), JsonSerializer(), router])

        failed = pipeline(Request(path="/boom"), Response())
        fine = pipeline(Request(path="/fine"), Response())

        assert failed.status == 500
        assert fine.status == 200
        assert json.loads(fine.content) == {"ok": True}
        assert seen == ["/boom", "/fine"]
        assert log.error.call_count == 1

    def test_runtime_error_ends_reporting_stage(self, log):
        resumed = []

        def router(request, response, next):
            mistake.handle_error(RuntimeErrorRecord(ErrorLevel.E_WARNING, "careful", "app.py", 4))
            resumed.append(request.path)
            return response.with_unserialized_body({"ok": True})

        mistake = Mistake(logger=log)
        pipeline = Pipeline([mistake, JsonSerializer(), router])

        result = pipeline(Request(path="/warn"), Response())

        assert result.status == 500
        assert json.loads(result.content) == {"errors": {"message": GENERIC_MESSAGE}}
        assert resumed == []
        assert log.error.call_count == 1
        assert not pipeline.error_mode

    def test_runtime_error_not_swallowed_by_stage_handler(self, log):
        def router(request, response, next):
            try:
                mistake.handle_error(RuntimeErrorRecord(ErrorLevel.E_NOTICE, "undefined index"))
            except Exception:
                return response.with_unserialized_body({"ok": True})
            return response

        mistake = Mistake(logger=log)
        pipeline = Pipeline([mistake, JsonSerializer(), router])

        result = pipeline(Request(), Response())

        assert result.status == 500
        assert json.loads(result.content) == {"errors": {"message": GENERIC_MESSAGE}}

    def test_runtime_error_outside_chain_returns_response(self, log):
        mistake = Mistake(logger=log)
        pipeline = Pipeline([mistake, JsonSerializer()])

        result = mistake.handle_error(RuntimeErrorRecord(ErrorLevel.E_WARNING, "careful"))

        assert result.status == 500
        assert json.loads(result.content) == {"errors": {"message": GENERIC_MESSAGE}}
        assert not pipeline.error_mode

    def test_from_config(self, pipeline):
        from mistake.config import MistakeConfig

        config = MistakeConfig(display_errors=True, generic_message="Sorry.", logger_name="svc.faults")
        mistake = Mistake.from_config(config, pipeline=pipeline)

        assert mistake.display_errors is True
        assert mistake.logger.name == "svc.faults"
        mistake.handle_exception(ValueError())
        assert pipeline.invocations[0].response.unserialized_body == {"errors": {"message": "Sorry."}}
