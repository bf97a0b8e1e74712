"""
Tests for mention index search and mention highlighting
"""

import pytest

from teamchat.chat.mentions import MentionIndex, split_mentions
from teamchat.chat.models import Participant
from teamchat.core.errors import InvalidInput


class TestMentionIndex:
    """Test participant search for autocomplete"""

    def setup_method(self):
        self.people = [
            Participant(id="1", display_name="Sarah Johnson"),
            Participant(id="2", display_name="Mike Chen"),
            Participant(id="3", display_name="Alex Saunders"),
            Participant(id="4", display_name="Jordan Lee"),
        ]
        self.index = MentionIndex(self.people)

    def test_empty_prefix_returns_everyone_in_order(self):
        assert self.index.search("") == self.people

    def test_missing_prefix_is_invalid_input(self):
        with pytest.raises(InvalidInput):
            self.index.search(None)

    def test_substring_match_is_case_insensitive(self):
        result = self.index.search("sa")
        assert [p.id for p in result] == ["1", "3"]

    def test_matches_inside_the_name_not_just_at_start(self):
        assert [p.id for p in self.index.search("chen")] == ["2"]
        assert [p.id for p in self.index.search("N L")] == ["4"]

    def test_result_is_input_order_not_relevance(self):
        index = MentionIndex([self.people[3], self.people[0]])
        assert [p.id for p in index.search("o")] == ["4", "1"]

    def test_no_match_returns_empty(self):
        assert self.index.search("zzz") == []

    @pytest.mark.parametrize("prefix", ["", "a", "A", "son", "e", "x", "Mike C"])
    def test_search_is_exact_order_preserving_subsequence(self, prefix):
        expected = [p for p in self.people if prefix.lower() in p.display_name.lower()]
        assert self.index.search(prefix) == expected

    def test_replace_swaps_participants(self):
        self.index.replace([Participant(id="9", display_name="Nina")])
        assert len(self.index) == 1
        assert self.index.search("") == [Participant(id="9", display_name="Nina")]

    def test_search_has_no_side_effects(self):
        self.index.search("sa")
        assert self.index.participants == tuple(self.people)


class TestSplitMentions:
    """Test rendering split of mention highlights"""

    def test_splits_single_word_mentions(self):
        assert split_mentions("@Sarah Let's review") == [
            ("@Sarah", True),
            (" Let's review", False),
        ]

    def test_plain_text_is_one_segment(self):
        assert split_mentions("no mentions here") == [("no mentions here", False)]

    def test_multiple_mentions(self):
        parts = split_mentions("hi @Bob and @Bobby!")
        assert [p for p, is_mention in parts if is_mention] == ["@Bob", "@Bobby"]
