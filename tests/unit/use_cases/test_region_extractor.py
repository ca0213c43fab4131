"""Unit tests for RegionExtractor."""

import unittest

from code_commandments.domain.config import EngineConfig
from code_commandments.domain.context import Context
from code_commandments.use_cases.region_extractor import RegionExtractor


class TestRegionExtraction(unittest.TestCase):

    def setUp(self) -> None:
        self.extractor = RegionExtractor()

    def test_nested_same_name_pair(self) -> None:
        text = "<a><a>x</a></a>"
        region = self.extractor.extract(text, "a")
        self.assertEqual(region.content, "<a>x</a>")
        self.assertEqual((region.start_offset, region.end_offset), (3, 11))
        self.assertEqual((region.open_tag_start, region.close_tag_end), (0, 15))

    def test_outermost_pair_for_any_depth_with_self_closing(self) -> None:
        for depth in range(1, 6):
            for position in ("before", "inside"):
                with self.subTest(depth=depth, position=position):
                    inner = "<t/>inner" if position == "inside" else "inner"
                    body = "<t>" * (depth - 1) + inner + "</t>" * (depth - 1)
                    prefix = "<t/>head " if position == "before" else "head "
                    text = prefix + '<t id="root">' + body + "</t> tail"
                    region = self.extractor.extract(text, "t")
                    self.assertEqual(region.content, body)
                    self.assertEqual(text[region.start_offset:region.end_offset], region.content)

    def test_round_trip_offsets(self) -> None:
        documents = [
            ("<template><div>x</div></template>", "template"),
            ("<script setup>\nconst a = 1\n</script>", "script"),
            ("x\n<template>\n  <template v-if='a'>b</template>\n</template>\n", "template"),
            ("<template></template>", "template"),
        ]
        for text, tag in documents:
            with self.subTest(text=text):
                region = self.extractor.extract(text, tag)
                self.assertIsNotNone(region)
                self.assertEqual(text[region.start_offset:region.end_offset], region.content)

    def test_missing_tag_is_none(self) -> None:
        self.assertIsNone(self.extractor.extract("<div>x</div>", "script"))

    def test_unclosed_tag_is_none(self) -> None:
        self.assertIsNone(self.extractor.extract("<script>const a = 1", "script"))

    def test_self_closing_only_is_none(self) -> None:
        self.assertIsNone(self.extractor.extract('<script src="a.js"/>', "script"))

    def test_self_closing_root_is_skipped(self) -> None:
        region = self.extractor.extract("<script/><script>code</script>", "script")
        self.assertEqual(region.content, "code")

    def test_attributes_are_parsed(self) -> None:
        region = self.extractor.extract('<script setup lang="ts">const a = 1</script>', "script")
        self.assertEqual(dict(region.attributes), {"setup": "", "lang": "ts"})
        self.assertTrue(region.has_attribute("setup"))

    def test_tag_name_with_metacharacters(self) -> None:
        self.assertEqual(self.extractor.extract("<a.b>x</a.b>", "a.b").content, "x")
        self.assertIsNone(self.extractor.extract("<aa>x</aa>", "a+"))

    def test_case_sensitivity_follows_config(self) -> None:
        text = "<Script>x</Script>"
        self.assertIsNone(self.extractor.extract(text, "script"))
        relaxed = RegionExtractor(EngineConfig({"case_sensitive_tags": False}))
        self.assertEqual(relaxed.extract(text, "script").content, "x")

    def test_empty_tag_name_is_an_error(self) -> None:
        with self.assertRaises(ValueError):
            self.extractor.extract("<a></a>", "")

    def test_extract_all(self) -> None:
        regions = self.extractor.extract_all("<template>a</template><script>b</script>", ["script", "style"])
        self.assertEqual(list(regions), ["script"])


class TestRegionResolution(unittest.TestCase):

    def setUp(self) -> None:
        self.extractor = RegionExtractor()

    def test_resolve_caches_found_region_by_kind(self) -> None:
        context = Context.from_document("a.vue", "<script>x</script>")
        context, region = self.extractor.resolve(context, "behavior")
        self.assertEqual(region.tag, "script")
        self.assertIs(context.region("behavior"), region)
        again, same = self.extractor.resolve(context, "behavior")
        self.assertIs(again, context)
        self.assertIs(same, region)

    def test_resolve_caches_missing_region(self) -> None:
        context = Context.from_document("a.vue", "<script>x</script>")
        context, region = self.extractor.resolve(context, "presentation")
        self.assertIsNone(region)
        self.assertIn("presentation", context.missing_regions)
