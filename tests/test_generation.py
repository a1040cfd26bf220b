"""Tests for synthetic payload and filter generation."""

import json
import uuid

import numpy as np
import pytest
from pydantic import ValidationError

from vdbbench.core.config import GenerationSettings, load_generation_settings
from vdbbench.core.exceptions import FilterSpecError, GenerationError
from vdbbench.core.ids import fake_uuid_to_index, index_to_fake_uuid, label_to_str
from vdbbench.core.types import DateFilter, DocumentPayload, FilterSpec, LabelFilter
from vdbbench.datasets.base import AnnBenchmarkDataset
from vdbbench.datasets.distributions import LabelSampler, RangeSampler
from vdbbench.datasets.payloads import (
    augmented_path_for,
    build_augmented_dataset,
    generate_augmented_dataset,
    load_augmented_dataset,
)


def settings_dict(**overrides):
    data = {
        "seed": 7,
        "publication_date": {
            "min": "2000-01-01",
            "max": "2023-06-01",
            "sample_distribution": {"type": "normal", "mean": "80%", "std": "15%"},
            "filters": {
                "has_lower_bound": 0.5,
                "has_upper_bound": 0.5,
                "lower_bound_sample_distribution": {"type": "uniform"},
                "upper_bound_sample_distribution": {"type": "uniform"},
            },
        },
        "authors": {
            "population": 20,
            "zipfs_law_pmf": {"s": 1.1},
            "property_count_distribution": [0.1, 0.5, 0.3, 0.1],
            "filters": {
                "include_count_distribution": [0.5, 0.3, 0.2],
                "exclude_count_distribution": [0.5, 0.3, 0.2],
            },
        },
        "tags": {
            "population": 50,
            "zipfs_law_pmf": {"s": 0.9},
            "property_count_distribution": [0.1, 0.2, 0.3, 0.2, 0.2],
            "filters": {
                "include_count_distribution": [0.4, 0.4, 0.2],
                "exclude_count_distribution": [0.4, 0.3, 0.2, 0.1],
            },
        },
    }
    data.update(overrides)
    return data


def make_settings(**overrides):
    return GenerationSettings(**settings_dict(**overrides))


class TestFakeUuids:
    """Test the index to UUID mapping."""

    def test_known_values(self):
        assert str(index_to_fake_uuid(12)) == "00000000-0000-400c-8000-00000000000c"
        assert str(index_to_fake_uuid(321)) == "00000000-0000-4141-8000-000000000141"
        assert label_to_str(0) == "00000000-0000-4000-8000-000000000000"

    def test_version_and_variant(self):
        value = index_to_fake_uuid(123456789)
        assert value.version == 4
        assert value.variant == uuid.RFC_4122

    @pytest.mark.parametrize("index", [0, 1, 12, 321, (1 << 54) - 1, 1 << 54, (1 << 56) - 1])
    def test_inverse(self, index):
        assert fake_uuid_to_index(index_to_fake_uuid(index)) == index
        assert fake_uuid_to_index(str(index_to_fake_uuid(index))) == index

    def test_negative_index(self):
        with pytest.raises(ValueError):
            index_to_fake_uuid(-1)


class TestFilterTypes:
    """Test filter construction and matching."""

    def setup_method(self):
        self.payload = DocumentPayload(publication_date=100, authors=(1, 2), tags=(5,))

    def test_overlap_rejected(self):
        with pytest.raises(FilterSpecError):
            LabelFilter(include=(1, 2), exclude=(2, 3))

    def test_duplicates_rejected(self):
        with pytest.raises(FilterSpecError):
            LabelFilter(include=(1, 1))

    def test_empty_spec(self):
        assert FilterSpec().is_empty
        assert FilterSpec().matches(self.payload)
        assert not FilterSpec(publication_date=DateFilter(lower_bound=0)).is_empty

    def test_date_modes(self):
        assert DateFilter().mode == "none"
        assert DateFilter(lower_bound=1).mode == "lower"
        assert DateFilter(upper_bound=1).mode == "upper"
        assert DateFilter(lower_bound=1, upper_bound=2).mode == "both"

    def test_date_bounds_are_closed(self):
        assert DateFilter(lower_bound=100, upper_bound=100).matches(100)
        assert not DateFilter(lower_bound=101).matches(100)
        assert not DateFilter(upper_bound=99).matches(100)

    def test_include_requires_all_labels(self):
        assert FilterSpec(authors=LabelFilter(include=(1, 2))).matches(self.payload)
        assert not FilterSpec(authors=LabelFilter(include=(1, 3))).matches(self.payload)

    def test_exclude_rejects_any_label(self):
        assert not FilterSpec(authors=LabelFilter(exclude=(3, 2))).matches(self.payload)
        assert FilterSpec(tags=LabelFilter(exclude=(4, 6))).matches(self.payload)

    def test_spec_round_trip(self):
        spec = FilterSpec(
            publication_date=DateFilter(upper_bound=10),
            authors=LabelFilter(include=(1,), exclude=(2, 3)),
        )
        assert FilterSpec.from_dict(json.loads(json.dumps(spec.to_dict()))) == spec

    def test_document_uses_uuid_labels(self):
        document = self.payload.to_document()
        assert document["authors"] == [label_to_str(1), label_to_str(2)]
        assert document["publication_date"] == 100


class TestGenerationSettings:
    """Test validation of generation settings."""

    def test_dates_converted_to_epoch(self):
        settings = make_settings()
        assert settings.publication_date.min == 946684800
        assert settings.publication_date.max > settings.publication_date.min

    def test_percentages_parsed(self):
        dist = make_settings().publication_date.sample_distribution
        assert dist.mean == pytest.approx(0.8)
        assert dist.std == pytest.approx(0.15)

    def test_min_must_be_below_max(self):
        settings = settings_dict()
        settings["publication_date"]["min"] = settings["publication_date"]["max"]
        with pytest.raises(ValidationError):
            GenerationSettings(**settings)

    def test_too_many_labels_per_document(self):
        with pytest.raises(ValidationError):
            make_settings(authors={
                "population": 4,
                "zipfs_law_pmf": {"s": 1.0},
                "property_count_distribution": [0.2, 0.2, 0.3, 0.3],
                "filters": {
                    "include_count_distribution": [1.0],
                    "exclude_count_distribution": [1.0],
                },
            })

    def test_too_many_filter_labels(self):
        with pytest.raises(ValidationError):
            make_settings(authors={
                "population": 6,
                "zipfs_law_pmf": {"s": 1.0},
                "property_count_distribution": [0.5, 0.5],
                "filters": {
                    "include_count_distribution": [0.5, 0.3, 0.2],
                    "exclude_count_distribution": [0.5, 0.3, 0.2],
                },
            })

    def test_negative_probability(self):
        with pytest.raises(ValidationError):
            make_settings(tags={
                "population": 50,
                "zipfs_law_pmf": {"s": 1.0},
                "property_count_distribution": [0.5, -0.1],
                "filters": {
                    "include_count_distribution": [1.0],
                    "exclude_count_distribution": [1.0],
                },
            })

    def test_bad_percentage(self):
        settings = settings_dict()
        settings["publication_date"]["sample_distribution"] = {"type": "normal", "mean": 0.5, "std": "10%"}
        with pytest.raises(ValidationError):
            GenerationSettings(**settings)

    def test_invalid_file_raises_generation_error(self, tmp_path):
        path = tmp_path / "generation.yaml"
        path.write_text("seed: 1\npublication_date: {min: 10, max: 5}\n")
        with pytest.raises(GenerationError):
            load_generation_settings(path)

    def test_shipped_settings_are_valid(self):
        settings = load_generation_settings()
        assert settings.authors.population == 20
        assert settings.tags.population == 200


class TestSamplers:
    """Test the individual samplers."""

    def test_normal_range_stays_in_bounds(self):
        settings = make_settings().publication_date
        sampler = RangeSampler(settings.sample_distribution, 0, 1000)
        rng = np.random.default_rng(1)
        values = [sampler.sample(rng) for _ in range(2000)]
        assert min(values) >= 0
        assert max(values) <= 1000

    def test_unique_labels_limited_to_half_population(self):
        sampler = LabelSampler(make_settings().authors)
        rng = np.random.default_rng(1)
        assert len(set(sampler.sample_unique(10, rng))) == 10
        with pytest.raises(GenerationError):
            sampler.sample_unique(11, rng)

    def test_zipf_prefers_low_labels(self):
        sampler = LabelSampler(make_settings().tags)
        rng = np.random.default_rng(3)
        labels = [label for _ in range(2000) for label in sampler.sample_unique(1, rng)]
        assert labels.count(0) > labels.count(40)


class TestAugmentedDataset:
    """Test augmented dataset generation."""

    def setup_method(self):
        self.settings = make_settings()

    def test_deterministic(self):
        first = build_augmented_dataset(200, 50, self.settings)
        second = build_augmented_dataset(200, 50, self.settings)
        assert first.dumps() == second.dumps()

    def test_seed_changes_output(self):
        first = build_augmented_dataset(200, 50, self.settings)
        second = build_augmented_dataset(200, 50, make_settings(seed=8))
        assert first.dumps() != second.dumps()

    def test_counts(self):
        augmented = build_augmented_dataset(200, 50, self.settings)
        assert len(augmented.documents) == 200
        assert len(augmented.queries) == 50
        assert augmented.meta["seed"] == 7

    def test_documents_within_settings(self):
        augmented = build_augmented_dataset(500, 0, self.settings)
        date = self.settings.publication_date
        for doc in augmented.documents:
            assert date.min <= doc.publication_date <= date.max
            assert len(set(doc.authors)) == len(doc.authors) <= 3
            assert all(0 <= a < 20 for a in doc.authors)
            assert len(set(doc.tags)) == len(doc.tags) <= 4
            assert len(doc.link) == 32 and doc.link.isalnum()

    def test_filters_disjoint_and_ordered(self):
        augmented = build_augmented_dataset(0, 1000, self.settings)
        for spec in augmented.queries:
            for labels in (spec.authors, spec.tags):
                assert not set(labels.include) & set(labels.exclude)
            date = spec.publication_date
            if date.mode == "both":
                assert date.lower_bound <= date.upper_bound
        assert any(not spec.authors.is_empty for spec in augmented.queries)

    def test_write_and_load(self, tmp_path):
        dataset = AnnBenchmarkDataset.from_arrays(
            np.zeros((30, 4), dtype=np.float32), np.zeros((5, 4), dtype=np.float32), name="tiny"
        )
        output = tmp_path / "tiny.augmented.json"
        path = generate_augmented_dataset(dataset, self.settings, output_path=output)
        assert path == output

        loaded = load_augmented_dataset(path)
        assert len(loaded.documents) == 30
        assert len(loaded.queries) == 5
        assert loaded.meta["vector_size"] == 4
        assert loaded.dumps() == output.read_text()

    def test_refuses_overwrite(self, tmp_path):
        dataset = AnnBenchmarkDataset.from_arrays(
            np.zeros((10, 2), dtype=np.float32), np.zeros((3, 2), dtype=np.float32)
        )
        output = tmp_path / "x.augmented.json"
        generate_augmented_dataset(dataset, self.settings, output_path=output)
        original = output.read_bytes()

        with pytest.raises(GenerationError):
            generate_augmented_dataset(dataset, make_settings(seed=99), output_path=output)
        assert output.read_bytes() == original

        generate_augmented_dataset(dataset, self.settings, output_path=output, force=True)
        assert output.read_bytes() == original
        assert [p.name for p in tmp_path.iterdir()] == ["x.augmented.json"]

    def test_augmented_path(self):
        assert augmented_path_for("data/gist-960-euclidean.hdf5").name == "gist-960-euclidean.augmented.json"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
