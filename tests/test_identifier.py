"""Tests for benchmark identifiers."""

from dataclasses import replace

import pytest

from vdbbench.core.exceptions import BenchmarkIdError
from vdbbench.core.identifier import MAX_IDENTIFIER_LENGTH, BenchmarkId, parse, render


class TestBenchmarkIdentifier:
    """Test identifier rendering and parsing."""

    def setup_method(self):
        """Set up test fixtures."""
        self.params = BenchmarkId(
            provider="qdrant",
            bench_group="query_throughput",
            m=16,
            ef_construction=100,
            cpu_limit=8.0,
            mem_limit=8.0,
            k=10,
            ef=100,
            fetch_payload=False,
            use_filters=False,
            num_tasks=5,
            queries_per_task=10,
        )

    def test_render_known_format(self):
        """Test the rendered form of a typical configuration."""
        assert render(self.params) == "qdrant/query_throughput/16:100_8.00:8.00-10:100:p:f-5:10"

    def test_parse_known_format(self):
        parsed = parse("qdrant/query_throughput/16:100_8.00:8.00-10:100:p:f-5:10")
        assert parsed == self.params

    def test_flags(self):
        ident = render(replace(self.params, fetch_payload=True, use_filters=True))
        assert ident.endswith("-10:100:P:F-5:10")
        parsed = parse(ident)
        assert parsed.fetch_payload is True
        assert parsed.use_filters is True

    @pytest.mark.parametrize(
        "changes",
        [
            {"provider": "elasticsearch"},
            {"provider": "vespa", "bench_group": "g.1-a"},
            {"cpu_limit": 0.0, "mem_limit": 12.5},
            {"cpu_limit": 1.25, "mem_limit": 0.01},
            {"k": 1, "ef": 1, "num_tasks": 1, "queries_per_task": 1},
            {"m": 64, "ef_construction": 512, "k": 100, "ef": 400},
        ],
    )
    def test_round_trip(self, changes):
        """Test that parse inverts render."""
        params = replace(self.params, **changes)
        ident = render(params)
        assert len(ident) <= MAX_IDENTIFIER_LENGTH
        assert parse(ident) == params
        assert render(parse(ident)) == ident

    def test_str_renders(self):
        assert str(self.params) == self.params.render() == render(self.params)

    @pytest.mark.parametrize(
        "ident, field",
        [
            ("qdrant/query_throughput", "structure"),
            ("qdrant/query_throughput/16:100-8.00:8.00-10:100:p:f-5:10", "structure"),
            ("/query_throughput/16:100_8.00:8.00-10:100:p:f-5:10", "provider"),
            ("qdrant/_x/16:100_8.00:8.00-10:100:p:f-5:10", "bench_group"),
            ("qdrant/query_throughput/016:100_8.00:8.00-10:100:p:f-5:10", "m"),
            ("qdrant/query_throughput/16:0_8.00:8.00-10:100:p:f-5:10", "ef_construction"),
            ("qdrant/query_throughput/16:100_8:8.00-10:100:p:f-5:10", "cpu_limit"),
            ("qdrant/query_throughput/16:100_8.00:8.000-10:100:p:f-5:10", "mem_limit"),
            ("qdrant/query_throughput/16:100_8.00:8.00-+10:100:p:f-5:10", "k"),
            ("qdrant/query_throughput/16:100_8.00:8.00-10:x:p:f-5:10", "ef"),
            ("qdrant/query_throughput/16:100_8.00:8.00-10:100:x:f-5:10", "fetch_payload"),
            ("qdrant/query_throughput/16:100_8.00:8.00-10:100:p:P-5:10", "use_filters"),
            ("qdrant/query_throughput/16:100_8.00:8.00-10:100:p:f-0:10", "num_tasks"),
            ("qdrant/query_throughput/16:100_8.00:8.00-10:100:p:f-5:", "queries_per_task"),
            ("qdrant/query_throughput/16:100_8.00:8.00-10:100:p:f-5:10:1", "parallelism"),
        ],
    )
    def test_parse_errors_name_field(self, ident, field):
        """Test that parse errors name the failing field."""
        with pytest.raises(BenchmarkIdError) as exc_info:
            parse(ident)
        assert exc_info.value.field == field

    def test_parse_too_long(self):
        ident = "x" * (MAX_IDENTIFIER_LENGTH + 1)
        with pytest.raises(BenchmarkIdError) as exc_info:
            parse(ident)
        assert exc_info.value.field == "length"

    def test_render_too_long(self):
        params = replace(self.params, bench_group="g" * 60)
        with pytest.raises(BenchmarkIdError) as exc_info:
            render(params)
        assert exc_info.value.field == "length"

    @pytest.mark.parametrize(
        "changes, field",
        [
            ({"provider": ""}, "provider"),
            ({"provider": "qd/rant"}, "provider"),
            ({"k": 0}, "k"),
            ({"ef": -1}, "ef"),
            ({"m": True}, "m"),
            ({"cpu_limit": -1.0}, "cpu_limit"),
            ({"cpu_limit": float("inf")}, "cpu_limit"),
            ({"mem_limit": float("nan")}, "mem_limit"),
            ({"mem_limit": 1.005}, "mem_limit"),
            ({"use_filters": "yes"}, "use_filters"),
        ],
    )
    def test_render_rejects_illegal_values(self, changes, field):
        with pytest.raises(BenchmarkIdError) as exc_info:
            render(replace(self.params, **changes))
        assert exc_info.value.field == field

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse("not an identifier")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
