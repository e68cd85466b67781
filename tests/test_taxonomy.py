"""Tests for the role taxonomy helpers."""


class TestTaxonomy:

    def test_parent_and_attribute_ids_are_valid(self):
        from spanlabel.taxonomy import is_valid_category

        assert is_valid_category("camera")
        assert is_valid_category("camera.movement")
        assert is_valid_category("lighting.timeOfDay")
        assert not is_valid_category("camera.wobble")
        assert not is_valid_category("")
        assert not is_valid_category(None)

    def test_legacy_ids_resolve_to_namespaced(self):
        from spanlabel.taxonomy import resolve_category

        assert resolve_category("wardrobe") == "subject.wardrobe"
        assert resolve_category("timeOfDay") == "lighting.timeOfDay"
        assert resolve_category("camera.movement") == "camera.movement"

    def test_category_helpers(self):
        from spanlabel.taxonomy import category_of, is_high_signal, parse_category_id

        assert category_of("camera.movement") == "camera"
        assert category_of("subject") == "subject"
        assert parse_category_id("subject.wardrobe") == ("subject", "wardrobe")
        assert parse_category_id("subject") == ("subject", None)
        assert parse_category_id(None) is None
        assert is_high_signal("technical.frameRate")
        assert not is_high_signal("subject.identity")

    def test_describe_taxonomy_lists_every_category(self):
        from spanlabel.taxonomy import CATEGORIES, describe_taxonomy

        rendered = describe_taxonomy()
        for cat in CATEGORIES:
            assert f"- {cat.id}:" in rendered
        assert "camera.movement" in rendered
