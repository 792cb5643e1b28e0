"""
Unit tests for Counters, RouteTally and the page classifier.
"""
import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.metrics_service.classifier import PageType, classify
from services.metrics_service.counters import OVERFLOW_ROUTE, Counters, RouteTally


# ── Classifier ──────────────────────────────────────────────

class TestClassify:
    def test_root_is_home(self):
        assert classify("/") is PageType.HOME

    def test_index_alias_is_home(self):
        assert classify("/index") is PageType.HOME

    def test_api_prefix(self):
        assert classify("/api/users") is PageType.API

    def test_api_without_trailing_slash_is_other(self):
        assert classify("/api") is PageType.OTHER

    def test_other(self):
        assert classify("/about") is PageType.OTHER

    def test_empty_route(self):
        assert classify("") is PageType.OTHER


# ── RouteTally ──────────────────────────────────────────────

class TestRouteTally:
    def test_lazy_creation_and_counting(self):
        t = RouteTally(max_routes=10)
        t.increment("/a")
        t.increment("/a")
        t.increment("/b")
        assert t.as_dict() == {"/a": 2, "/b": 1}

    def test_overflow_bucket(self):
        t = RouteTally(max_routes=2)
        t.increment("/a")
        t.increment("/b")
        assert t.increment("/c") == OVERFLOW_ROUTE
        t.increment("/d")
        assert t.as_dict() == {"/a": 1, "/b": 1, OVERFLOW_ROUTE: 2}

    def test_known_routes_keep_counting_after_cap(self):
        t = RouteTally(max_routes=1)
        t.increment("/a")
        t.increment("/z")
        assert t.increment("/a") == "/a"
        assert t.as_dict()["/a"] == 2

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            RouteTally(max_routes=0)


# ── Counters ────────────────────────────────────────────────

class TestCounters:
    def test_initial_view(self):
        view = Counters().view()
        assert view.request_count == 0
        assert view.pages == {"home": 0, "api": 0, "other": 0}
        assert view.routes == {}

    def test_record_request(self):
        c = Counters()
        c.record_request("/api/x", PageType.API, success=True)
        c.record_request("/api/x", PageType.API, success=False)
        view = c.view()
        assert view.request_count == 2
        assert view.success_count == 1
        assert view.error_count == 1
        assert view.pages["api"] == 2
        assert view.routes == {"/api/x": 2}

    def test_page_view_does_not_count_request(self):
        c = Counters()
        c.record_page_view("/", PageType.HOME)
        view = c.view()
        assert view.request_count == 0
        assert view.pages["home"] == 1
        assert view.routes == {"/": 1}

    def test_active_connections_clamped_at_zero(self):
        c = Counters()
        c.exit()
        assert c.active_connections == 0
        c.enter()
        c.enter()
        c.exit()
        assert c.active_connections == 1

    def test_view_is_detached(self):
        c = Counters()
        c.record_route("/a")
        view = c.view()
        c.record_route("/a")
        assert view.routes == {"/a": 1}


class TestCountersConcurrency:
    def test_no_lost_updates(self):
        c = Counters()
        per_thread = 1000

        def worker(i: int):
            for n in range(per_thread):
                c.enter()
                c.record_request(f"/r{i % 3}", PageType.OTHER, success=(n % 4 != 0))
                c.exit()

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        view = c.view()
        assert view.request_count == 8 * per_thread
        assert view.error_count == 8 * per_thread // 4
        assert view.success_count + view.error_count == view.request_count
        assert view.pages["other"] == 8 * per_thread
        assert sum(view.routes.values()) == 8 * per_thread
        assert view.active_connections == 0
