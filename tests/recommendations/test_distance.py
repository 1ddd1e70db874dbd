import json
import pytest

import httpx

from dispatchpilot.services.recommendations.distance import (
    DistanceRequest,
    HaversineDistanceResolver,
    HttpDistanceResolver,
    estimate_eta_minutes,
    get_distance_resolver,
    haversine_meters,
)


LONDON = (51.5074, -0.1278)
PARIS = (48.8566, 2.3522)


def _request(origin=LONDON, destination=PARIS) -> DistanceRequest:
    return DistanceRequest(origin[0], origin[1], destination[0], destination[1])


def _echo_handler(seen: list):
    """Matrix service answering 1000m / 2min per index."""
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append([p["index"] for p in body["pairs"]])
        results = [
            {"index": p["index"], "distance_meters": 1000.0 * (p["index"] + 1), "eta_minutes": 2 * (p["index"] + 1)}
            for p in body["pairs"]
        ]
        return httpx.Response(200, json={"results": results})
    return handler


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_meters(*LONDON, *LONDON) == 0.0

    def test_london_paris(self):
        assert haversine_meters(*LONDON, *PARIS) == pytest.approx(343_500, rel=0.01)

    def test_eta_rounds_up(self):
        # 10km at 50km/h is 12 minutes; 10.1km is 12.12 -> 13
        assert estimate_eta_minutes(10_000, 50) == 12
        assert estimate_eta_minutes(10_100, 50) == 13

    def test_resolver_keeps_order(self):
        resolver = HaversineDistanceResolver(average_speed_kmh=50)
        results = resolver.resolve_batch([_request(LONDON, LONDON), _request(LONDON, PARIS)])
        assert results[0].distance_meters == 0.0
        assert results[0].eta_minutes == 0
        assert results[1].distance_meters == pytest.approx(343_500, rel=0.01)


class TestHttpResolver:
    def test_chunks_and_correlates_by_index(self):
        seen = []
        client = httpx.Client(transport=httpx.MockTransport(_echo_handler(seen)))
        resolver = HttpDistanceResolver(
            base_url="http://distance.test/matrix", batch_size=2, max_concurrent_batches=2, client=client,
        )

        results = resolver.resolve_batch([_request() for _ in range(5)])

        assert sorted(seen) == [[0, 1], [2, 3], [4]]
        assert [r.distance_meters for r in results] == [1000.0, 2000.0, 3000.0, 4000.0, 5000.0]
        assert [r.eta_minutes for r in results] == [2, 4, 6, 8, 10]

    def test_failed_chunk_gives_per_pair_absence(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if body["pairs"][0]["index"] == 0:
                return httpx.Response(503, text="overloaded")
            return httpx.Response(200, json={"results": [
                {"index": p["index"], "distance_meters": 500.0, "eta_minutes": 1} for p in body["pairs"]
            ]})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        resolver = HttpDistanceResolver(base_url="http://distance.test/matrix", batch_size=2, client=client)

        results = resolver.resolve_batch([_request() for _ in range(3)])

        assert results[0].distance_meters is None and results[1].distance_meters is None
        assert results[2].distance_meters == 500.0

    def test_missing_indices_are_absent(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"results": [{"index": 1, "distance_meters": 700.0, "eta_minutes": 3}]})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        resolver = HttpDistanceResolver(base_url="http://distance.test/matrix", batch_size=10, client=client)

        results = resolver.resolve_batch([_request(), _request()])

        assert results[0].distance_meters is None
        assert results[1].distance_meters == 700.0

    def test_timeout_degrades(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        resolver = HttpDistanceResolver(base_url="http://distance.test/matrix", client=client)

        results = resolver.resolve_batch([_request()])
        assert results[0].distance_meters is None
        assert results[0].eta_minutes is None

    def test_empty_batch_makes_no_call(self):
        seen = []
        client = httpx.Client(transport=httpx.MockTransport(_echo_handler(seen)))
        resolver = HttpDistanceResolver(base_url="http://distance.test/matrix", client=client)
        assert resolver.resolve_batch([]) == []
        assert seen == []

    def test_requires_url(self, monkeypatch):
        monkeypatch.setattr("dispatchpilot.services.recommendations.distance.settings.DISTANCE_SERVICE_URL", None)
        with pytest.raises(ValueError):
            HttpDistanceResolver()


class TestFactory:
    def test_default_is_haversine(self):
        assert isinstance(get_distance_resolver(), HaversineDistanceResolver)

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setattr("dispatchpilot.services.recommendations.distance.settings.DISTANCE_PROVIDER", "carrier-pigeon")
        with pytest.raises(ValueError):
            get_distance_resolver()
