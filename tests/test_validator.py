"""Tests for category structure validation."""

from conftest import make_category

from finance_ledger.ledger.tree import CategoryTree
from finance_ledger.models.ledger import MoneyType
from finance_ledger.validation import CategoryValidator, InvalidCategoryChange


class TestCategoryValidator:
    """Tests for whole-set validation."""

    def setup_method(self):
        self.validator = CategoryValidator()

    def test_valid_forest(self):
        result = self.validator.validate([
            make_category("1", "Salary"),
            make_category("2", "Bonus", parent_id="1", order=1),
        ])
        assert result.is_valid
        assert result.issues == []

    def test_dangling_parent_is_warning(self):
        result = self.validator.validate([make_category("1", "Orphan", parent_id="gone")])
        assert result.is_valid
        assert [i.issue_type for i in result.warnings] == ["dangling_parent"]

    def test_type_mismatch_is_error(self):
        result = self.validator.validate([
            make_category("1", "Salary"),
            make_category("2", "Rent", MoneyType.EXPENSE, parent_id="1", order=1),
        ])
        assert not result.is_valid
        assert result.issues[0].issue_type == "type_mismatch"
        assert result.issues[0].category_ids == ["2", "1"]

    def test_cycle_is_error(self):
        result = self.validator.validate([
            make_category("a", "A", parent_id="b"),
            make_category("b", "B", parent_id="a", order=1),
        ])
        assert not result.is_valid
        cycles = [i for i in result.issues if i.issue_type == "cycle"]
        assert len(cycles) == 1
        assert set(cycles[0].category_ids) == {"a", "b"}

    def test_duplicate_sibling_names_are_warnings(self):
        result = self.validator.validate([
            make_category("1", "Salary"),
            make_category("2", "salary", order=1),
            make_category("3", "Salary", MoneyType.EXPENSE, order=2),
        ])
        assert result.is_valid
        duplicates = [i for i in result.issues if i.issue_type == "duplicate_name"]
        assert len(duplicates) == 1
        assert duplicates[0].category_ids == ["1", "2"]


class TestNewCategoryCheck:
    """Tests for checking a category before it is created."""

    def setup_method(self):
        self.validator = CategoryValidator()
        self.tree = CategoryTree.build([make_category("1", "Salary")])

    def test_root_is_always_allowed(self):
        assert self.validator.check_new_category(self.tree, MoneyType.EXPENSE, None) == []

    def test_same_type_child_is_allowed(self):
        assert self.validator.check_new_category(self.tree, MoneyType.INCOME, "1") == []

    def test_other_type_child_is_rejected(self):
        issues = self.validator.check_new_category(self.tree, MoneyType.EXPENSE, "1")
        assert [i.issue_type for i in issues] == ["type_mismatch"]

    def test_unknown_parent_is_rejected(self):
        issues = self.validator.check_new_category(self.tree, MoneyType.INCOME, "missing")
        assert [i.issue_type for i in issues] == ["unknown_parent"]

    def test_invalid_change_carries_issues(self):
        issues = self.validator.check_new_category(self.tree, MoneyType.EXPENSE, "1")
        error = InvalidCategoryChange(issues)
        assert error.issues == issues
        assert "Salary" in str(error)
