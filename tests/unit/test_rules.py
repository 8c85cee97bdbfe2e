"""
Tests for rule tree patching
"""

import pytest

from akamai_mcp.exceptions import PatchError, RuleValidationError
from akamai_mcp.models import RulePatch
from akamai_mcp.rules import apply_patches, get_value, split_pointer, validate_rule_tree


class TestSplitPointer:
    def test_plain_pointer(self):
        assert split_pointer("/behaviors/0/options") == ["behaviors", "0", "options"]

    def test_root(self):
        assert split_pointer("") == []

    def test_escapes(self):
        assert split_pointer("/a~1b/c~0d") == ["a/b", "c~d"]

    def test_bracket_indices(self):
        """Test behaviors[0] is read as behaviors/0"""
        assert split_pointer("/children[1]/behaviors[0]/name") == [
            "children",
            "1",
            "behaviors",
            "0",
            "name",
        ]

    def test_relative_path_rejected(self):
        with pytest.raises(PatchError):
            split_pointer("behaviors/0")


class TestApplyPatches:
    def test_replace(self, sample_rules):
        patched = apply_patches(
            sample_rules,
            [{"op": "replace", "path": "/behaviors/0/options/hostname", "value": "o2"}],
        )

        assert patched["behaviors"][0]["options"]["hostname"] == "o2"
        # Input untouched
        assert sample_rules["behaviors"][0]["options"]["hostname"] == "origin.example.com"

    def test_add_appends_with_dash(self, sample_rules):
        patched = apply_patches(
            sample_rules,
            [{"op": "add", "path": "/behaviors/-", "value": {"name": "gzip"}}],
        )
        assert patched["behaviors"][-1] == {"name": "gzip"}
        assert len(patched["behaviors"]) == 3

    def test_add_inserts_at_index(self, sample_rules):
        patched = apply_patches(
            sample_rules,
            [{"op": "add", "path": "/behaviors[0]", "value": {"name": "first"}}],
        )
        assert patched["behaviors"][0] == {"name": "first"}
        assert patched["behaviors"][1]["name"] == "origin"

    def test_add_new_key(self, sample_rules):
        patched = apply_patches(
            sample_rules, [{"op": "add", "path": "/comments", "value": "bulk"}]
        )
        assert patched["comments"] == "bulk"

    def test_add_does_not_create_parents(self, sample_rules):
        """Test missing intermediate objects are an error"""
        with pytest.raises(PatchError) as exc_info:
            apply_patches(
                sample_rules, [{"op": "add", "path": "/variables/0/name", "value": "x"}]
            )
        assert "'variables' does not exist" in str(exc_info.value)

    def test_remove(self, sample_rules):
        patched = apply_patches(sample_rules, [{"op": "remove", "path": "/behaviors/1"}])
        assert [b["name"] for b in patched["behaviors"]] == ["origin"]

    def test_remove_missing(self, sample_rules):
        with pytest.raises(PatchError):
            apply_patches(sample_rules, [{"op": "remove", "path": "/nope"}])

    def test_replace_missing_key(self, sample_rules):
        with pytest.raises(PatchError):
            apply_patches(sample_rules, [{"op": "replace", "path": "/nope", "value": 1}])

    def test_copy_and_move(self, sample_rules):
        patched = apply_patches(
            sample_rules,
            [
                {"op": "copy", "from": "/behaviors/0", "path": "/children/0/behaviors/-"},
                {"op": "move", "from": "/behaviors/1", "path": "/children/0/behaviors/0"},
            ],
        )

        assert [b["name"] for b in patched["behaviors"]] == ["origin"]
        assert [b["name"] for b in patched["children"][0]["behaviors"]] == [
            "caching",
            "origin",
        ]

    def test_move_into_own_child(self, sample_rules):
        with pytest.raises(PatchError):
            apply_patches(
                sample_rules,
                [{"op": "move", "from": "/children", "path": "/children/0/children"}],
            )

    def test_test_op(self, sample_rules):
        patches = [
            {"op": "test", "path": "/name", "value": "default"},
            {"op": "replace", "path": "/name", "value": "renamed"},
        ]
        assert apply_patches(sample_rules, patches)["name"] == "renamed"

        with pytest.raises(PatchError) as exc_info:
            apply_patches(sample_rules, [{"op": "test", "path": "/name", "value": "x"}])
        assert "value does not match" in str(exc_info.value)

    def test_index_out_of_range(self, sample_rules):
        with pytest.raises(PatchError) as exc_info:
            apply_patches(sample_rules, [{"op": "replace", "path": "/behaviors/5", "value": {}}])
        assert exc_info.value.details["op"] == "replace"
        assert exc_info.value.details["path"] == "/behaviors/5"

    def test_accepts_models(self, sample_rules):
        patch = RulePatch(op="replace", path="/options/is_secure", value=False)
        assert apply_patches(sample_rules, [patch])["options"]["is_secure"] is False

    def test_get_value(self, sample_rules):
        assert get_value(sample_rules, "/children/0/name") == "Static"


class TestValidateRuleTree:
    def test_valid(self, sample_rules):
        validate_rule_tree(sample_rules)

    def test_missing_behaviors(self, sample_rules):
        del sample_rules["behaviors"]
        with pytest.raises(RuleValidationError):
            validate_rule_tree(sample_rules)

    def test_missing_name(self, sample_rules):
        sample_rules["name"] = ""
        with pytest.raises(RuleValidationError):
            validate_rule_tree(sample_rules)

    def test_bad_children(self, sample_rules):
        sample_rules["children"] = [{"behaviors": []}]
        with pytest.raises(RuleValidationError):
            validate_rule_tree(sample_rules)

    def test_not_a_dict(self):
        with pytest.raises(RuleValidationError):
            validate_rule_tree(["default"])
