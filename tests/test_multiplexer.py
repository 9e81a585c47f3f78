# tests/test_multiplexer.py
import io

from connectors.schema import LogEvent, LogSource
from logstream import LogStreamMultiplexer, PipeReader
from supervisor import ReadinessLatch

RECORD = (
    "[2025-06-01T10:00:00.000+0000] [Payara 6.2025.6] [INFO] [] [javax.enterprise.system.core] "
    "[tid: _ThreadID=1 _ThreadName=main] [[ shop was successfully deployed in 812 milliseconds. ]]"
)


def _event(line):
    return LogEvent(line, LogSource.STDOUT)


def test_trim_applies_to_sink_but_triggers_see_raw_line():
    out, seen = [], []
    mux = LogStreamMultiplexer(sink=out.append, trim=True)
    mux.add_trigger("was successfully deployed", seen.append)
    mux.handle(_event(RECORD))
    assert out == ["INFO javax.enterprise.system.core: shop was successfully deployed in 812 milliseconds."]
    assert seen == [RECORD]


def test_first_matching_trigger_wins():
    calls = []
    mux = LogStreamMultiplexer(sink=lambda line: None)
    mux.add_trigger("Exception while deploying the app", lambda line: calls.append("failed"))
    mux.add_trigger("deploy", lambda line: calls.append("deployed"))
    mux.add_trigger("", lambda line: calls.append("never"))
    mux.handle(_event("Exception while deploying the app [shop]"))
    mux.handle(_event("shop was successfully deployed"))
    assert calls == ["failed", "deployed"]


def test_readiness_latch_is_offered_lines():
    latch = ReadinessLatch("startup time :")
    mux = LogStreamMultiplexer(sink=lambda line: None, latch=latch)
    mux.handle(_event("Starting domain"))
    assert not latch.is_set()
    mux.handle(_event("Payara Server startup time : 4,521ms"))
    assert latch.is_set()


def test_failing_callback_is_logged_and_reader_continues(caplog):
    out = []

    def explode(line):
        raise RuntimeError("callback failed")

    mux = LogStreamMultiplexer(sink=out.append)
    mux.add_trigger("boom", explode)
    thread = mux.attach(PipeReader(io.BytesIO(b"boom\nafter\n")))
    thread.join(5)

    assert out == ["boom", "after"]
    assert any("Error while processing" in r.getMessage() for r in caplog.records)


def test_stop_sets_cancel_and_joins():
    mux = LogStreamMultiplexer(sink=lambda line: None)
    thread = mux.attach(PipeReader(io.BytesIO(b"")))
    mux.stop(timeout=5)
    assert mux.cancel.is_set()
    assert not thread.is_alive()
