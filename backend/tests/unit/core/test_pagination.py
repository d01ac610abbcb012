"""
Unit Tests for pagination helpers
"""
from app.utils.pagination import clamp_page, total_pages_for, split_has_more, MAX_PAGE_SIZE


class TestPagination:

    def test_clamp_page(self):
        assert clamp_page(0, 0) == (1, 1)
        assert clamp_page(3, 1000) == (3, MAX_PAGE_SIZE)

    def test_total_pages(self):
        assert total_pages_for(0, 20) == 1
        assert total_pages_for(41, 20) == 3

    def test_split_has_more(self):
        assert split_has_more([1, 2, 3], 2) == ([1, 2], True)
        assert split_has_more([1, 2], 2) == ([1, 2], False)
