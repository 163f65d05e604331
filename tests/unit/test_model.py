"""
Unit tests for the visual query model.
Tests table and column management, cascading removal and validation of every mutator.
"""

import pytest

from opsconsole.query import (
    FilterOperator,
    JoinKind,
    ListValue,
    LogicalConnective,
    NoValue,
    QueryReferenceError,
    QueryValidationError,
    RangeValue,
    ScalarValue,
    SortDirection,
    VisualQueryModel,
)


@pytest.fixture
def model(catalog):
    return VisualQueryModel(catalog)


@pytest.fixture
def joined_model(model):
    """Model with customers and orders on the canvas and one item of every kind"""
    model.add_table("customers")
    model.add_table("orders")
    model.toggle_column("customers", "name")
    model.toggle_column("orders", "total")
    model.add_join("customers", "id", "orders", "customer_id")
    model.add_filter("orders", "status", "equals", "shipped")
    model.add_filter("customers", "age", "greater_than", 18)
    model.add_sort("orders", "total", "DESC")
    model.add_group("customers", "name")
    model.add_aggregate("SUM", "orders", "total", "revenue")
    return model


def snapshot(model):
    return model.to_dict()


class TestTables:
    """Test placing tables on the canvas"""

    def test_new_model_is_empty(self, model):
        assert model.is_empty
        assert model.name == "New Query"
        assert model.limit is None
        assert model.id

    def test_add_table(self, model):
        assert model.add_table("customers") is True
        assert model.tables == ["customers"]
        assert model.is_empty is False

    def test_add_table_twice_is_noop(self, model):
        model.add_table("customers")
        assert model.add_table("customers") is False
        assert model.tables == ["customers"]

    def test_add_unknown_table(self, model):
        with pytest.raises(QueryReferenceError) as exc_info:
            model.add_table("invoices")
        assert exc_info.value.table == "invoices"
        assert model.tables == []

    def test_remove_absent_table(self, model):
        with pytest.raises(QueryReferenceError):
            model.remove_table("customers")

    def test_remove_table_cascades(self, joined_model):
        """Test that nothing referencing a removed table survives"""
        joined_model.remove_table("orders")

        assert joined_model.tables == ["customers"]
        assert [(c.table, c.column) for c in joined_model.selected_columns] == [("customers", "name")]
        assert joined_model.joins == []
        assert [(f.table, f.column) for f in joined_model.filters] == [("customers", "age")]
        assert joined_model.sorts == []
        assert [(g.table, g.column) for g in joined_model.groups] == [("customers", "name")]
        assert joined_model.aggregates == []
        assert joined_model.referenced_tables() <= set(joined_model.tables)

    def test_re_adding_removed_table_starts_clean(self, joined_model):
        joined_model.remove_table("orders")
        joined_model.add_table("orders")

        assert joined_model.tables == ["customers", "orders"]
        assert "orders" not in {c.table for c in joined_model.selected_columns}
        assert joined_model.joins == []
        assert "orders" not in {f.table for f in joined_model.filters}
        assert joined_model.sorts == []
        assert "orders" not in {g.table for g in joined_model.groups}
        assert joined_model.aggregates == []
        assert joined_model.referenced_tables() == {"customers"}

    def test_remove_table_clears_connective_of_new_first_filter(self, joined_model):
        assert joined_model.filters[1].logical_connective == LogicalConnective.AND

        joined_model.remove_table("orders")

        assert joined_model.filters[0].logical_connective is None

    def test_remove_table_keeps_filter_ids(self, joined_model):
        age_filter_id = joined_model.filters[1].id
        joined_model.remove_table("orders")
        assert joined_model.filters[0].id == age_filter_id


class TestColumns:
    """Test column selection and aliases"""

    def test_toggle_selects_then_deselects(self, model):
        model.add_table("customers")

        assert model.toggle_column("customers", "name") is True
        assert [(c.table, c.column) for c in model.selected_columns] == [("customers", "name")]

        assert model.toggle_column("customers", "name") is False
        assert model.selected_columns == []

    def test_toggle_preserves_selection_order(self, model):
        model.add_table("customers")
        model.toggle_column("customers", "email")
        model.toggle_column("customers", "name")
        assert [c.column for c in model.selected_columns] == ["email", "name"]

    def test_toggle_column_on_table_not_in_query(self, model):
        with pytest.raises(QueryReferenceError):
            model.toggle_column("customers", "name")

    def test_toggle_unknown_column(self, model):
        model.add_table("customers")
        with pytest.raises(QueryReferenceError) as exc_info:
            model.toggle_column("customers", "nickname")
        assert exc_info.value.column == "nickname"

    def test_alias(self, model):
        model.add_table("customers")
        model.toggle_column("customers", "name", "customer_name")
        assert model.selected_columns[0].alias == "customer_name"

        updated = model.set_column_alias("customers", "name", "full_name")
        assert updated.alias == "full_name"
        assert model.selected_columns[0].alias == "full_name"

    def test_blank_alias_clears(self, model):
        model.add_table("customers")
        model.toggle_column("customers", "name", "customer_name")
        model.set_column_alias("customers", "name", "  ")
        assert model.selected_columns[0].alias is None

    @pytest.mark.parametrize("alias", ["full name", "1st", "x;DROP", 'a"b'])
    def test_invalid_alias_rejected(self, model, alias):
        model.add_table("customers")
        with pytest.raises(QueryValidationError):
            model.toggle_column("customers", "name", alias)
        assert model.selected_columns == []

    def test_alias_on_unselected_column(self, model):
        model.add_table("customers")
        with pytest.raises(QueryReferenceError):
            model.set_column_alias("customers", "name", "customer_name")


class TestJoins:
    """Test join management"""

    def test_add_join(self, model):
        model.add_table("customers")
        model.add_table("orders")
        join = model.add_join("customers", "id", "orders", "customer_id", "LEFT")
        assert join.join_kind == JoinKind.LEFT
        assert model.joins == [join]

    def test_join_requires_both_tables(self, model):
        model.add_table("customers")
        with pytest.raises(QueryReferenceError):
            model.add_join("customers", "id", "orders", "customer_id")
        assert model.joins == []

    def test_invalid_join_kind(self, model):
        model.add_table("customers")
        model.add_table("orders")
        with pytest.raises(QueryValidationError):
            model.add_join("customers", "id", "orders", "customer_id", "CROSS")

    def test_remove_join(self, joined_model):
        joined_model.remove_join(joined_model.joins[0].id)
        assert joined_model.joins == []

    def test_remove_unknown_join(self, joined_model):
        with pytest.raises(QueryValidationError):
            joined_model.remove_join("no-such-id")
        assert len(joined_model.joins) == 1


class TestFilters:
    """Test filter validation and connectives"""

    @pytest.fixture
    def customers_model(self, model):
        model.add_table("customers")
        return model

    def test_first_filter_has_no_connective(self, customers_model):
        query_filter = customers_model.add_filter("customers", "age", "greater_than", 18, "OR")
        assert query_filter.logical_connective is None

    def test_later_filters_default_to_and(self, customers_model):
        customers_model.add_filter("customers", "age", "greater_than", 18)
        second = customers_model.add_filter("customers", "name", "like", "ann")
        assert second.logical_connective == LogicalConnective.AND

    def test_explicit_or(self, customers_model):
        customers_model.add_filter("customers", "age", "greater_than", 18)
        second = customers_model.add_filter("customers", "email", "is_null", logical_connective="OR")
        assert second.logical_connective == LogicalConnective.OR

    @pytest.mark.parametrize("operator,value,expected", [
        ("equals", "Alice", ScalarValue("Alice")),
        ("in", ["a", "b"], ListValue(("a", "b"))),
        ("in", "a", ListValue(("a",))),
        ("between", {"min": 18, "max": 65}, RangeValue(18, 65)),
        ("is_null", None, NoValue()),
        ("isNotNull", None, NoValue()),
    ])
    def test_value_shapes(self, customers_model, operator, value, expected):
        query_filter = customers_model.add_filter("customers", "age", operator, value)
        assert query_filter.value == expected

    def test_camel_case_operator(self, customers_model):
        query_filter = customers_model.add_filter("customers", "age", "greaterThan", 18)
        assert query_filter.operator == FilterOperator.GREATER_THAN

    @pytest.mark.parametrize("operator,value", [
        ("equals", None),
        ("equals", [1, 2]),
        ("in", []),
        ("in", None),
        ("between", {"min": 1}),
        ("between", [1, 2]),
        ("between", {"min": None, "max": 3}),
        ("is_null", "x"),
        ("matches", "x"),
    ])
    def test_invalid_values_rejected(self, customers_model, operator, value):
        """Test that a rejected filter leaves the model unchanged"""
        before = snapshot(customers_model)
        with pytest.raises(QueryValidationError):
            customers_model.add_filter("customers", "age", operator, value)
        assert snapshot(customers_model) == before

    def test_invalid_connective(self, customers_model):
        with pytest.raises(QueryValidationError):
            customers_model.add_filter("customers", "age", "equals", 1, "XOR")

    def test_filter_on_unknown_column(self, customers_model):
        with pytest.raises(QueryReferenceError):
            customers_model.add_filter("customers", "salary", "equals", 1)
        assert customers_model.filters == []

    def test_remove_first_filter_normalizes_connective(self, customers_model):
        first = customers_model.add_filter("customers", "age", "greater_than", 18)
        customers_model.add_filter("customers", "name", "equals", "Bob", "OR")

        customers_model.remove_filter(first.id)

        assert len(customers_model.filters) == 1
        assert customers_model.filters[0].logical_connective is None


class TestSortsGroupsAggregates:
    """Test sorts, groups and aggregates"""

    def test_add_sort_default_direction(self, model):
        model.add_table("customers")
        sort = model.add_sort("customers", "name")
        assert sort.direction == SortDirection.ASC

    def test_invalid_sort_direction(self, model):
        model.add_table("customers")
        with pytest.raises(QueryValidationError):
            model.add_sort("customers", "name", "SIDEWAYS")

    def test_group_requires_known_column(self, model):
        model.add_table("customers")
        with pytest.raises(QueryReferenceError):
            model.add_group("customers", "region")

    def test_invalid_aggregate_function(self, model):
        model.add_table("orders")
        with pytest.raises(QueryValidationError):
            model.add_aggregate("MEDIAN", "orders", "total")
        assert model.aggregates == []

    def test_remove_items_by_id(self, joined_model):
        joined_model.remove_sort(joined_model.sorts[0].id)
        joined_model.remove_group(joined_model.groups[0].id)
        joined_model.remove_aggregate(joined_model.aggregates[0].id)
        assert joined_model.sorts == []
        assert joined_model.groups == []
        assert joined_model.aggregates == []


class TestLimitAndName:
    """Test limit and name handling"""

    def test_set_and_clear_limit(self, model):
        model.set_limit(50)
        assert model.limit == 50
        model.set_limit(0)
        assert model.limit == 0
        model.set_limit(None)
        assert model.limit is None

    @pytest.mark.parametrize("limit", [-1, 2.5, "10", True])
    def test_invalid_limit_keeps_previous(self, model, limit):
        model.set_limit(10)
        with pytest.raises(QueryValidationError):
            model.set_limit(limit)
        assert model.limit == 10

    def test_rename(self, model):
        model.rename("  Top customers ")
        assert model.name == "Top customers"

    def test_blank_name_rejected(self, model):
        with pytest.raises(QueryValidationError):
            model.rename("   ")
        assert model.name == "New Query"


class TestSerialization:
    """Test to_dict/from_dict"""

    def test_round_trip_preserves_structure(self, joined_model, catalog):
        joined_model.set_limit(25)
        data = joined_model.to_dict()

        restored = VisualQueryModel.from_dict(data, catalog)
        restored_data = restored.to_dict()

        assert restored.id == joined_model.id
        assert restored_data["tables"] == data["tables"]
        assert restored_data["selected_columns"] == data["selected_columns"]
        assert restored_data["limit"] == 25
        assert [f["value"] for f in restored_data["filters"]] == ["shipped", 18]
        assert restored_data["aggregates"][0]["alias"] == "revenue"

    def test_from_dict_rechecks_references(self, catalog):
        data = {"name": "Broken", "tables": ["customers"], "selected_columns": [{"table": "orders", "column": "id"}]}
        with pytest.raises(QueryReferenceError):
            VisualQueryModel.from_dict(data, catalog)
