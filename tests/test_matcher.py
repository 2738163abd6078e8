import pytest

from faceauth.matcher import Matcher, euclidean_distance


def test_distance_is_euclidean():
    assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)


def test_distance_is_symmetric():
    a = [0.12, -0.5, 0.33, 0.9]
    b = [0.4, 0.1, -0.2, 0.05]
    assert euclidean_distance(a, b) == euclidean_distance(b, a)


def test_self_distance_is_zero_and_matches():
    matcher = Matcher()
    a = [0.25] * 128
    assert matcher.distance(a, a) == 0.0
    assert matcher.is_match(0.0)


def test_threshold_is_inclusive():
    matcher = Matcher(threshold=0.6)
    assert matcher.is_match(0.6)
    assert not matcher.is_match(0.6000001)


def test_default_threshold():
    assert Matcher().threshold == 0.6


def test_compare_reports_distance_and_decision():
    matcher = Matcher(threshold=0.6)

    close = matcher.compare([0.1, 0.1], [0.1, 0.4])
    assert close.distance == pytest.approx(0.3)
    assert close.matched
    assert close.threshold == 0.6

    far = matcher.compare([0.0, 0.0], [3.0, 4.0])
    assert not far.matched


def test_length_mismatch_is_rejected():
    with pytest.raises(ValueError):
        euclidean_distance([0.1] * 128, [0.1] * 64)
