"""Tests for admin table sort and selection state."""

from tables import RowSelection, SortState


class TestSortState:
    def test_new_column_starts_descending(self):
        state = SortState().click("name")
        assert (state.column, state.direction) == ("name", "desc")

    def test_same_column_toggles(self):
        state = SortState().click("name").click("name")
        assert state.direction == "asc"
        assert state.click("name").direction == "desc"

    def test_switching_column_resets_to_descending(self):
        state = SortState().click("name").click("name").click("email")
        assert (state.column, state.direction) == ("email", "desc")

    def test_mongo_sort_falls_back_for_unknown_columns(self):
        assert SortState("password", "asc").mongo_sort(["name"]) == [("createdAt", 1)]
        assert SortState("name", "desc").mongo_sort(["name"]) == [("name", -1)]

    def test_from_query(self):
        assert SortState.from_query("name", "asc").as_dict() == {"field": "name", "order": "asc"}
        assert SortState.from_query(None, "sideways").direction == "desc"


class TestRowSelection:
    def test_select_all_follows_rows(self):
        selection = RowSelection(visible=["a", "b", "c"])
        selection.toggle("a")
        selection.toggle("b")
        assert not selection.all_selected

        selection.toggle("c")
        assert selection.all_selected

        selection.toggle("b")
        assert not selection.all_selected

    def test_toggle_all(self):
        selection = RowSelection(visible=["a", "b"])
        selection.toggle_all()
        assert selection.ids() == ["a", "b"]
        selection.toggle_all()
        assert selection.ids() == []

    def test_toggle_all_from_partial_selects_everything(self):
        selection = RowSelection(visible=["a", "b"], selected={"a"})
        selection.toggle_all()
        assert selection.all_selected

    def test_empty_page_is_never_all_selected(self):
        assert not RowSelection().all_selected

    def test_new_page_drops_hidden_selection(self):
        selection = RowSelection(visible=["a", "b"], selected={"a", "b"})
        selection.set_page(["b", "c"])
        assert selection.ids() == ["b"]
        assert not selection.all_selected

    def test_ids_follow_visible_order(self):
        selection = RowSelection(visible=["c", "a", "b"], selected={"a", "c", "zzz"})
        assert selection.ids() == ["c", "a"]
