# File: tests/test_metrics.py

import pytest

from manga_api.services.metrics import MetricsRecorder, RingBuffer, percentile

from conftest import bearer


class FakeClock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


def test_ring_buffer_keeps_insertion_order_until_full():
    buf = RingBuffer(3)
    buf.push(1)
    buf.push(2)
    assert buf.get_all() == [1, 2]
    assert len(buf) == 2


def test_ring_buffer_overwrites_oldest():
    buf = RingBuffer(3)
    for i in range(10):
        buf.push(i)
        assert len(buf.get_all()) <= 3
    assert buf.get_all() == [7, 8, 9]
    assert len(buf) == buf.capacity


def test_ring_buffer_clear():
    buf = RingBuffer(2)
    buf.push("a")
    buf.clear()
    assert buf.get_all() == []


def test_ring_buffer_rejects_zero_capacity():
    with pytest.raises(ValueError):
        RingBuffer(0)


@pytest.mark.parametrize("p", [0, 50, 99, 100])
def test_percentile_of_empty_input_is_zero(p):
    assert percentile([], p) == 0


def test_percentile_is_nearest_rank():
    values = [15, 20, 35, 40, 50]
    assert percentile(values, 5) == 15
    assert percentile(values, 30) == 20
    assert percentile(values, 40) == 20
    assert percentile(values, 50) == 35
    assert percentile(values, 100) == 50
    assert percentile(values, 0) == 15


def test_percentile_100_is_max():
    values = [3, 9, 1, 7]
    assert percentile(values, 100) == max(values)


def test_windowed_counts_and_averages():
    clock = FakeClock()
    recorder = MetricsRecorder(clock=clock)

    recorder.record_response("GET /a", 100, 200)
    clock.now += 10_000
    recorder.record_response("GET /a", 300, 200)

    assert recorder.windowed_count("responses", 60_000) == 2
    assert recorder.windowed_average("responses", 60_000) == 200
    # Only the second sample is strictly newer than now - 5s
    assert recorder.windowed_count("responses", 5_000) == 1
    assert recorder.windowed_average("responses", 5_000) == 300
    assert recorder.windowed_average("responses", 0) == 0

    clock.now += 120_000
    assert recorder.windowed_count("responses", 60_000) == 0
    assert recorder.windowed_average("responses", 60_000) == 0


def test_unknown_stream():
    with pytest.raises(ValueError):
        MetricsRecorder().windowed_count("nope", 1000)


def test_endpoint_aggregate():
    recorder = MetricsRecorder()
    recorder.record_response("GET /api/users/{user_id}", 10, 200)
    recorder.record_response("GET /api/users/{user_id}", 21, 404)

    stats = recorder.endpoint_breakdown()["GET /api/users/{user_id}"]
    assert stats == {
        "count": 2,
        "total_time": 31,
        "avg_time": 16,
        "max_time": 21,
        "errors": 1,
    }


def test_buffers_respect_capacity():
    recorder = MetricsRecorder(response_capacity=5, error_capacity=2, slow_query_capacity=1)
    for i in range(20):
        recorder.record_response("GET /x", i, 500)
        recorder.record_error(f"boom {i}")
        recorder.record_slow_query("SELECT 1", 1500)
    assert len(recorder.responses.get_all()) == 5
    assert len(recorder.errors.get_all()) == 2
    assert len(recorder.slow_queries.get_all()) == 1
    assert recorder.recent_errors()[0]["message"] == "boom 19"


def test_error_rate_and_reset():
    recorder = MetricsRecorder()
    recorder.record_response("GET /x", 5, 200)
    recorder.record_response("GET /x", 5, 500)
    assert recorder.error_rate() == 50.0

    recorder.reset()
    assert recorder.responses.get_all() == []
    assert recorder.endpoint_breakdown() == {}
    assert recorder.error_rate() == 0


def test_middleware_records_requests_by_route_template(client, metrics, make_user):
    user_id, token = make_user("alice@example.com")
    client.get(f"/api/users/{user_id}", headers=bearer(token))
    client.get("/api/users/me")

    endpoints = metrics.endpoint_breakdown()
    assert endpoints["GET /api/users/{user_id}"]["count"] == 1
    assert endpoints["GET /api/users/me"]["errors"] == 1
    assert endpoints["POST /api/auth/login"]["count"] == 1

    errors = metrics.recent_errors()
    assert errors[0]["status_code"] == 401
    assert errors[0]["endpoint"] == "GET /api/users/me"


def test_security_headers_present(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_slow_queries_are_captured(engine):
    from sqlalchemy import text

    from manga_api.db.session import build_session_factory, install_query_timer

    recorder = MetricsRecorder()
    install_query_timer(engine, recorder, threshold_ms=-1)
    with build_session_factory(engine)() as session:
        session.execute(text("SELECT   1"))

    events = recorder.recent_slow_queries()
    assert events and events[0]["query"] == "SELECT 1"
