"""Unit tests for Pipeline composition and judging."""

import re
import unittest
from unittest.mock import MagicMock

import pytest

from code_commandments.domain.config import EngineConfig
from code_commandments.domain.context import Context, DeclarationTree
from code_commandments.domain.signals import Collect, SkipRun
from code_commandments.domain.verdict import Finding, VerdictKind
from code_commandments.use_cases.pipeline import Pipeline, PipelineState


def _violation(context: Context) -> Finding:
    return Finding.at(1, "violation")


def _warning(context: Context) -> Finding:
    return Finding.at(2, "warning")


class TestPipelinePrecedence(unittest.TestCase):

    def test_violation_outranks_warning(self) -> None:
        verdict = Pipeline().map_to_findings(_violation).map_to_warnings(_warning).judge("a.py", "")
        self.assertEqual(verdict.kind, VerdictKind.VIOLATIONS)
        self.assertEqual([f.message for f in verdict.findings], ["violation"])

    def test_warning_then_violation_still_violations(self) -> None:
        verdict = Pipeline().map_to_warnings(_warning).map_to_findings(_violation).judge("a.py", "")
        self.assertEqual(verdict.kind, VerdictKind.VIOLATIONS)

    def test_warnings_only(self) -> None:
        verdict = Pipeline().map_to_warnings(_warning).judge("a.py", "")
        self.assertEqual(verdict.kind, VerdictKind.WARNINGS)

    def test_skip_after_findings_is_skipped(self) -> None:
        verdict = (
            Pipeline()
            .map_to_findings(_violation)
            .skip_when(lambda ctx: True, "late skip")
            .judge("a.py", "")
        )
        self.assertEqual(verdict.kind, VerdictKind.SKIPPED)
        self.assertEqual(verdict.findings, ())
        self.assertEqual(verdict.skip_reason, "late skip")

    def test_empty_pipeline_passes(self) -> None:
        self.assertTrue(Pipeline().judge("a.py", "anything").is_pass)

    def test_early_pass_stops_remaining_stages(self) -> None:
        later = MagicMock()
        verdict = Pipeline().return_pass_when(lambda ctx: True).pipe(later, name="later").judge("a.py", "")
        self.assertTrue(verdict.is_pass)
        later.assert_not_called()

    def test_early_pass_discards_collected_findings(self) -> None:
        verdict = Pipeline().map_to_findings(_violation).return_pass_when(lambda ctx: True).judge("a.py", "")
        self.assertTrue(verdict.is_pass)

    def test_first_terminal_signal_wins(self) -> None:
        verdict = (
            Pipeline()
            .skip_when(lambda ctx: True, "first")
            .return_pass_when(lambda ctx: True)
            .judge("a.py", "")
        )
        self.assertEqual(verdict.skip_reason, "first")


class TestRegionScenarios(unittest.TestCase):

    def test_no_behavior_region_is_skipped(self) -> None:
        verdict = (
            Pipeline()
            .skip_if_no_region()
            .extract_region("behavior")
            .match_patterns("X")
            .judge("a.vue", "plain text with X but no tags")
        )
        self.assertEqual(verdict.kind, VerdictKind.SKIPPED)
        self.assertEqual(verdict.findings, ())

    def test_presentation_only_document_skips_behavior_rule(self) -> None:
        verdict = (
            Pipeline()
            .skip_if_no_region("behavior")
            .extract_region("behavior")
            .match_patterns("X")
            .findings_from_matches("found X")
            .judge("a.vue", "<template>X</template>")
        )
        self.assertEqual(verdict.kind, VerdictKind.SKIPPED)
        self.assertEqual(verdict.findings, ())

    def test_matches_in_behavior_region_become_findings(self) -> None:
        text = "<template>console.log</template>\n<script>\nconsole.log(1)\n</script>"
        verdict = (
            Pipeline()
            .in_behavior()
            .match_patterns({"log": r"console\.(?P<method>\w+)"})
            .findings_from_matches("Remove console.{method}", lambda m: f"Delete line {m.line}")
            .judge("a.vue", text)
        )
        self.assertEqual(verdict.kind, VerdictKind.VIOLATIONS)
        self.assertEqual(len(verdict.findings), 1)
        finding = verdict.findings[0]
        self.assertEqual(finding.line, 3)
        self.assertEqual(finding.message, "Remove console.log")
        self.assertEqual(finding.suggestion, "Delete line 3")
        self.assertIsNotNone(finding.snippet)

    def test_snippet_window_follows_config(self) -> None:
        config = EngineConfig({"snippet_length": 8, "snippet_lead": 0})
        text = "let a = 1; debugger; let b = 2"
        verdict = Pipeline(config).match_all("debugger").findings_from_matches("No debugger").judge("a.js", text)
        self.assertEqual(verdict.findings[0].snippet, "...debugger...")

    def test_in_region_passes_when_missing(self) -> None:
        verdict = Pipeline().in_presentation().map_to_findings(_violation).judge("a.vue", "<script></script>")
        self.assertTrue(verdict.is_pass)

    def test_required_region_skips_when_missing(self) -> None:
        verdict = Pipeline().extract_region("presentation", required=True).judge("a.vue", "")
        self.assertEqual(verdict.skip_reason, "No presentation region")

    def test_return_pass_if_region_matches(self) -> None:
        text = "<script>// eslint-disable</script>"
        verdict = (
            Pipeline()
            .extract_region("behavior")
            .return_pass_if_region_matches("eslint-disable")
            .map_to_findings(_violation)
            .judge("a.vue", text)
        )
        self.assertTrue(verdict.is_pass)

    def test_return_pass_if_named_region_matches_extracts_it(self) -> None:
        text = "<template>// skip-me</template><script>bad()</script>"
        pipeline = (
            Pipeline()
            .return_pass_if_region_matches("skip-me", region="presentation")
            .map_to_findings(_violation)
        )
        self.assertEqual(pipeline.judge("a.vue", text).kind, VerdictKind.PASS)
        self.assertEqual(pipeline.judge("b.vue", "<template>ok</template>").kind, VerdictKind.VIOLATIONS)
        self.assertEqual(pipeline.judge("c.vue", "skip-me").kind, VerdictKind.VIOLATIONS)

    def test_match_patterns_in_named_region_extracts_it(self) -> None:
        text = "<template>{{ $t('a') }}</template><script>$t('b')</script>"
        state = Pipeline().match_patterns(r"\$t\(", region="presentation").run_state(
            Context.from_document("a.vue", text))
        self.assertEqual(len(state.context.matches), 1)
        self.assertTrue(state.context.has_region("presentation"))


class TestPathFilters(unittest.TestCase):

    def test_excluded_path_fragments_pass(self) -> None:
        config = EngineConfig({"excluded_path_fragments": ["Commandments/Validators/"]})
        pipeline = Pipeline(config=config).map_to_findings(_violation)
        self.assertTrue(pipeline.judge("src/Commandments/Validators/Foo.py", "").is_pass)
        self.assertTrue(pipeline.judge("src/app/Foo.py", "").has_violations)

    def test_only_paths_containing(self) -> None:
        pipeline = Pipeline().only_paths_containing("Pages/").map_to_findings(_violation)
        self.assertTrue(pipeline.judge("src/Components/A.vue", "").is_pass)
        self.assertTrue(pipeline.judge("src/Pages/A.vue", "").has_violations)

    def test_exclude_paths_containing(self) -> None:
        pipeline = Pipeline().exclude_paths_containing("Partials/").map_to_findings(_violation)
        self.assertTrue(pipeline.judge("src/Partials/A.vue", "").is_pass)


class TestCollecting(unittest.TestCase):

    def test_map_over_matches_accepts_lists_and_none(self) -> None:
        def per_match(match: object) -> object:
            if match.text == "a":
                return [Finding.at(match.line, "a1"), Finding.at(match.line, "a2")]
            return None

        verdict = Pipeline().match_all("[ab]").map_to_findings(per_match, over="matches").judge("x", "a\nb")
        self.assertEqual([f.message for f in verdict.findings], ["a1", "a2"])

    def test_map_over_selector(self) -> None:
        verdict = (
            Pipeline()
            .map_to_findings(lambda n: Finding.at(n, f"item {n}"), over=lambda ctx: [1, 2])
            .judge("x", "")
        )
        self.assertEqual(len(verdict.findings), 2)

    def test_filter_and_reject_matches(self) -> None:
        verdict = (
            Pipeline()
            .match_all(r"\w+")
            .filter_matches(lambda m: m.text.startswith("use"))
            .reject_matches(lambda m: m.text == "useless")
            .findings_from_matches("{text}")
            .judge("x", "useStore useless other")
        )
        self.assertEqual([f.message for f in verdict.findings], ["useStore"])

    def test_for_each_match_receives_context(self) -> None:
        seen = []

        def visit(match: object, context: Context) -> Finding:
            seen.append(context.path)
            return Finding.at(match.line, "hit")

        verdict = Pipeline().match_all("x").for_each_match(visit).judge("doc.txt", "x x")
        self.assertEqual(len(verdict.findings), 2)
        self.assertEqual(seen, ["doc.txt", "doc.txt"])

    def test_warnings_from_matches(self) -> None:
        verdict = Pipeline().match_all("x").warnings_from_matches("consider {text}").judge("a", "x")
        self.assertTrue(verdict.has_warnings)
        self.assertEqual(verdict.findings[0].message, "consider x")

    def test_add_findings(self) -> None:
        verdict = Pipeline().add_findings([Finding.general("whole file")]).judge("a", "")
        self.assertTrue(verdict.has_violations)

    def test_run_state_exposes_channels(self) -> None:
        state = Pipeline().map_to_findings(_violation).map_to_warnings(_warning).run_state(
            Context.from_document("a", ""))
        self.assertIsInstance(state, PipelineState)
        self.assertEqual(len(state.violations), 1)
        self.assertEqual(len(state.warnings), 1)


class TestDeclarationStages:

    def _pipeline(self, tree: DeclarationTree | None, config: EngineConfig | None = None) -> Pipeline:
        parser = MagicMock()
        parser.parse.return_value = tree
        return Pipeline(config=config, parser=parser)

    def test_long_members_excluding_constructor(self, controller_tree: DeclarationTree) -> None:
        verdict = (
            self._pipeline(controller_tree)
            .parse_declarations()
            .extract_entities()
            .extract_members(exclude_constructor=True)
            .filter_long_members(2)
            .map_to_findings(lambda ref: Finding.at(ref.member.line, f"{ref.qualified_name} is too long"),
                             over="members")
            .judge("app/user_controller.py", "")
        )
        assert verdict.has_violations
        assert [(f.line, f.message) for f in verdict.findings] == [(9, "UserController.index is too long")]

    def test_only_public_members(self, controller_tree: DeclarationTree) -> None:
        state = (
            self._pipeline(controller_tree)
            .parse_declarations()
            .extract_entities()
            .extract_members(only_public=True, exclude_magic=True)
            .run_state(Context.from_document("a.py", ""))
        )
        assert [ref.member.name for ref in state.context.members] == ["__init__", "show", "index"]

    def test_unparseable_document_skips_when_required(self) -> None:
        verdict = self._pipeline(None).parse_declarations(required=True).judge("a.py", "def (")
        assert verdict.kind is VerdictKind.SKIPPED
        assert verdict.skip_reason == "Document could not be parsed"

    def test_unparseable_document_continues_when_optional(self) -> None:
        verdict = (
            self._pipeline(None)
            .parse_declarations()
            .match_structure(lambda ref: True)
            .findings_from_matches("hit")
            .judge("a.py", "def (")
        )
        assert verdict.is_pass

    def test_structure_matches_become_findings(self, controller_tree: DeclarationTree) -> None:
        verdict = (
            self._pipeline(controller_tree)
            .parse_declarations()
            .match_structure(lambda ref: ref.statement.calls_name("user"), rule_tag="auth", scope="statements")
            .findings_from_matches("Do not resolve the user in {member}")
            .judge("a.py", "")
        )
        assert [(f.line, f.message) for f in verdict.findings] == [(4, "Do not resolve the user in __init__")]

    def test_entities_classified_from_config(self, controller_tree: DeclarationTree) -> None:
        config = EngineConfig({"base_class_map": {"controller": ["Controller"]}})
        verdict = (
            self._pipeline(controller_tree, config)
            .parse_declarations()
            .extract_entities()
            .filter_category("controller")
            .map_to_findings(lambda e: Finding.at(e.line, f"{e.name} is a controller"), over="entities")
            .judge("a.py", "")
        )
        assert [f.message for f in verdict.findings] == ["UserController is a controller"]

    def test_reject_entities(self, controller_tree: DeclarationTree) -> None:
        verdict = (
            self._pipeline(controller_tree)
            .parse_declarations()
            .extract_entities()
            .reject_entities(lambda e: e.name.endswith("Controller"))
            .map_to_findings(lambda e: Finding.at(e.line, "x"), over="entities")
            .judge("a.py", "")
        )
        assert verdict.is_pass


class TestStageFailures:

    def test_raising_stage_becomes_skipped(self) -> None:
        def exploding(context: Context) -> Context:
            raise RuntimeError("boom")

        verdict = Pipeline().map_to_findings(_violation).pipe(exploding).judge("a.py", "")
        assert verdict.kind is VerdictKind.SKIPPED
        assert verdict.skip_reason == "Stage 'exploding' failed: boom"

    def test_wrong_return_type_becomes_skipped(self) -> None:
        verdict = Pipeline().pipe(lambda ctx: 42, name="bad").judge("a.py", "")
        assert verdict.is_skipped
        assert "bad" in verdict.skip_reason

    def test_bad_finding_type_becomes_skipped(self) -> None:
        verdict = Pipeline().map_to_findings(lambda ctx: "not a finding").judge("a.py", "")
        assert verdict.is_skipped

    def test_custom_stage_signals(self) -> None:
        verdict = (
            Pipeline()
            .pipe(lambda ctx: Collect.warnings([Finding.at(1, "w")]))
            .pipe(lambda ctx: SkipRun("custom"))
            .judge("a", "")
        )
        assert verdict.skip_reason == "custom"


class TestComposition:

    def test_builder_is_immutable(self) -> None:
        base = Pipeline()
        extended = base.return_pass_when(lambda ctx: False)
        assert len(base) == 0
        assert len(extended) == 1
        assert extended.stage_names == ("return_pass_when",)

    def test_through_appends_in_order(self) -> None:
        def first(context: Context) -> Context:
            return context

        def second(context: Context) -> Context:
            return context

        assert Pipeline().through([first, second]).stage_names == ("first", "second")

    def test_invalid_composition_raises(self) -> None:
        with pytest.raises(TypeError):
            Pipeline().pipe(42)  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            Pipeline().skip_when(lambda ctx: True, "")
        with pytest.raises(ValueError):
            Pipeline().parse_declarations()
        with pytest.raises(ValueError):
            Pipeline().map_to_findings(_violation, over="lines")
        with pytest.raises(TypeError):
            Pipeline().map_to_findings(_violation, over=3)  # type: ignore[arg-type]
        with pytest.raises(re.error):
            Pipeline().match_patterns("(")
        with pytest.raises(ValueError):
            Pipeline().extract_region("")
        with pytest.raises(TypeError):
            Pipeline().findings_from_matches(None)
