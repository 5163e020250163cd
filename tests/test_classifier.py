from __future__ import annotations

import math
import random

import pytest

from conftest import LinearViewport, block_buffer
from rorschach_rain.analyzers.classifier import ADJECTIVES, SHAPE_DICTIONARY, ShapeClassifier
from rorschach_rain.models import Blob, LatLng, Segment
from rorschach_rain.processors.contours import ContourExtractor


def rect_blob(lat_span: float, lng_span: float, south: float = 1.0, west: float = 1.0,
              diagonals: int = 0) -> Blob:
    north, east = south + lat_span, west + lng_span
    sw, se = LatLng(south, west), LatLng(south, east)
    ne, nw = LatLng(north, east), LatLng(north, west)
    segments = [Segment(sw, se), Segment(se, ne), Segment(ne, nw), Segment(nw, sw)]
    # Internal cuts inflate the boundary length without moving the box
    segments += [Segment(sw, ne) if i % 2 == 0 else Segment(se, nw) for i in range(diagonals)]
    return Blob.from_segments(segments)


@pytest.fixture
def classifier():
    return ShapeClassifier(random.Random(1))


@pytest.fixture
def view():
    # 10 x 10 degrees, diagonal ~14.14
    return LinearViewport(width=100, height=100, deg_per_px=0.1)


def test_metrics_for_rectangle(classifier, view):
    metrics = classifier.measure(rect_blob(1, 4), view)

    assert metrics.magnitude == pytest.approx(math.sqrt(17))
    assert metrics.normalized_magnitude == pytest.approx(math.sqrt(17) / math.sqrt(200))
    assert metrics.aspect_ratio == pytest.approx(4)
    assert metrics.ruggedness == pytest.approx(1)


def test_elongated_by_aspect_ratio(classifier, view):
    result = classifier.classify(rect_blob(1, 4), view)

    assert 0.1 <= result.metrics.normalized_magnitude <= 0.6
    assert result.metrics.category == 'elongated'
    assert (result.label, result.icon) in SHAPE_DICTIONARY['elongated']
    assert result.adjective in ADJECTIVES['elongated']


def test_tiny_wins_over_aspect_and_ruggedness(classifier, view):
    # Diagonal 1/20 of the view diagonal, long and thin, lots of internal cuts
    lng_span = math.sqrt(200) / 20 * math.cos(math.atan(0.1))
    blob = rect_blob(lng_span * 0.1, lng_span, diagonals=12)

    result = classifier.classify(blob, view)

    assert result.metrics.normalized_magnitude == pytest.approx(0.05)
    assert result.metrics.aspect_ratio > 2.5
    assert result.metrics.ruggedness > 1.5
    assert result.metrics.category == 'tiny'


def test_huge(classifier, view):
    result = classifier.classify(rect_blob(9, 9, south=0.5, west=0.5), view)
    assert result.metrics.category == 'huge'


def test_spiky_when_boundary_is_long(classifier, view):
    result = classifier.classify(rect_blob(3, 3, diagonals=2), view)

    assert result.metrics.aspect_ratio == pytest.approx(1)
    assert result.metrics.ruggedness > 1.5
    assert result.metrics.category == 'spiky'


def test_round_otherwise(classifier, view):
    result = classifier.classify(rect_blob(3, 3), view)
    assert result.metrics.category == 'round'


def test_no_viewport_defaults_normalized_magnitude(classifier):
    metrics = classifier.measure(rect_blob(3, 3))

    assert metrics.normalized_magnitude == 0.5
    assert metrics.category == 'round'


def test_degenerate_span_is_infinitely_elongated(classifier, view):
    blob = Blob.from_segments([Segment(LatLng(5, 2), LatLng(5, 6))])
    metrics = classifier.measure(blob, view)

    assert math.isinf(metrics.aspect_ratio)
    assert metrics.category == 'elongated'


def test_metrics_are_deterministic_labels_stay_in_category(view):
    blob = rect_blob(3, 3, diagonals=2)
    results = [ShapeClassifier(random.Random(seed)).classify(blob, view) for seed in range(30)]

    assert len({r.metrics for r in results}) == 1
    assert all((r.label, r.icon) in SHAPE_DICTIONARY['spiky'] for r in results)
    assert len({r.label for r in results}) > 1


def test_seeded_random_source_reproduces_labels(view):
    blob = rect_blob(1, 4)
    first = ShapeClassifier().classify(blob, view, random.Random(42))
    second = ShapeClassifier().classify(blob, view, random.Random(42))

    assert first == second


def test_fallback_uses_generic_table(classifier):
    result = classifier.fallback()

    assert (result.label, result.icon) in SHAPE_DICTIONARY['generic']
    assert result.metrics is None


def test_dictionary_sizes():
    for category in ('round', 'elongated', 'spiky', 'tiny', 'huge'):
        assert 13 <= len(SHAPE_DICTIONARY[category]) <= 16
        assert len(ADJECTIVES[category]) == 4


def test_extracted_square_is_round(classifier, view):
    blob = ContourExtractor(blur_radius=0).extract(block_buffer(), view)
    result = classifier.classify(blob, view)

    assert result.metrics.aspect_ratio == pytest.approx(1, abs=0.05)
    assert result.metrics.ruggedness < 1.5
    assert result.metrics.category == 'round'
