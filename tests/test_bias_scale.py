import pytest

from biaswatch.utils.bias_scale import clamp_score, label


@pytest.mark.parametrize("score, expected", [
    (0, "Conservative"),
    (34, "Conservative"),
    (35, "Leaning Conservative"),
    (44, "Leaning Conservative"),
    (45, "Neutral/Centrist"),
    (50, "Neutral/Centrist"),
    (55, "Neutral/Centrist"),
    (56, "Leaning Liberal"),
    (65, "Leaning Liberal"),
    (66, "Liberal"),
    (100, "Liberal"),
])
def test_label_cut_points(score, expected):
    assert label(score) == expected


def test_clamp_score():
    assert clamp_score(None) == 50
    assert clamp_score("72") == 72
    assert clamp_score(49.6) == 50
    assert clamp_score(-10) == 0
    assert clamp_score(250) == 100
    assert clamp_score("high") == 50
    assert clamp_score(True) == 50
