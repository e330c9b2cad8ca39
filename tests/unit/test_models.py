"""Unit tests for postings and posting lists."""

import pytest

from repo_search.search.models import Posting, PostingList


@pytest.mark.unit
class TestPosting:
    def test_frequency_counts_positions(self):
        posting = Posting.from_positions("1", [4, 0, 2])
        assert list(posting.positions) == [0, 2, 4]
        assert posting.frequency == 3

    def test_to_dict(self):
        assert Posting.from_positions("7", [1]).to_dict() == {"doc_id": "7", "frequency": 1, "positions": [1]}


@pytest.mark.unit
class TestPostingList:
    """Posting lists keep insertion order and merge positions."""

    def test_extend_merges_positions(self):
        postings = PostingList("react")
        postings.extend("1", [0, 3])
        postings.extend("1", [3, 7])

        assert list(postings.get("1").positions) == [0, 3, 7]
        assert postings.document_frequency == 1
        assert postings.total_frequency == 3

    def test_order_and_removal(self):
        postings = PostingList("vue")
        postings.extend("2", [0])
        postings.extend("1", [1])

        assert postings.doc_ids() == ["2", "1"]
        assert postings.remove("2") is True
        assert postings.remove("2") is False
        assert "1" in postings
        assert len(postings) == 1

    def test_empty_list_is_falsy(self):
        postings = PostingList("gone")
        postings.add(Posting.from_positions("1", [0]))
        postings.remove("1")
        assert not postings
