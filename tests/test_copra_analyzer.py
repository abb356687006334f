"""Tests for membership analysis helpers."""
import numpy as np
import pytest

from copra_graph import CopraAnalyzer, LabelsetTable


@pytest.fixture
def overlapping():
    return LabelsetTable.from_labelsets([
        [(0, 1.0)],
        [(0, 0.5), (3, 0.5)],
        [(3, 1.0)],
        [(3, 0.6), (0, 0.4)],
        [(4, 1.0)],
    ])


def test_membership_frame_lists_every_entry(overlapping):
    frame = CopraAnalyzer(verbose=False).membership_frame(overlapping)

    assert list(frame.columns) == ['vertex', 'community', 'coefficient', 'rank']
    assert len(frame) == 7
    row = frame[(frame['vertex'] == 3) & (frame['rank'] == 1)].iloc[0]
    assert row['community'] == 0
    assert row['coefficient'] == pytest.approx(0.4)


def test_community_sizes_count_overlaps(overlapping):
    sizes = CopraAnalyzer(verbose=False).community_sizes(overlapping)

    assert sizes.name == 'size'
    assert sizes.to_dict() == {0: 3, 3: 3, 4: 1}
    assert sizes.iloc[-1] == 1


def test_community_sizes_primary_only(overlapping):
    sizes = CopraAnalyzer(verbose=False).community_sizes(overlapping, primary_only=True)

    assert sizes.to_dict() == {0: 2, 3: 2, 4: 1}
    assert sizes.sum() == overlapping.span


def test_overlap_statistics(overlapping, capsys):
    stats = CopraAnalyzer(verbose=True).overlap_statistics(overlapping)

    assert stats['n_vertices'] == 5
    assert stats['n_communities'] == 3
    assert stats['n_overlapping_vertices'] == 2
    assert stats['mean_memberships'] == pytest.approx(7 / 5)
    assert stats['max_memberships'] == 2
    assert stats['largest_community'] == 3
    assert "3 communities over 5 vertices" in capsys.readouterr().out


def test_overlap_statistics_quiet(overlapping, capsys):
    CopraAnalyzer(verbose=False).overlap_statistics(overlapping)
    assert capsys.readouterr().out == ""


def test_compare_identical_partitions_up_to_relabeling():
    analyzer = CopraAnalyzer(verbose=False)

    nmi = analyzer.compare_memberships([0, 0, 1, 1], [5, 5, 2, 2])

    assert nmi == pytest.approx(1.0)


def test_compare_independent_partitions():
    analyzer = CopraAnalyzer(verbose=False)

    nmi = analyzer.compare_memberships([0, 0, 1, 1], [0, 1, 0, 1])

    assert nmi == pytest.approx(0.0, abs=1e-12)


def test_compare_empty_and_mismatched():
    analyzer = CopraAnalyzer(verbose=False)
    assert analyzer.compare_memberships(np.array([]), np.array([])) == 1.0
    with pytest.raises(ValueError, match="shapes differ"):
        analyzer.compare_memberships([0, 1], [0, 1, 2])
