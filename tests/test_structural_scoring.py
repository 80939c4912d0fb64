"""Tests for structural integrity scoring."""
import random

import numpy as np
import pytest

from assembly import HardwareKind, PartCategory
from contact_graph import KDTreePairs, StructuralPoint
from geometry_primitives import world_bounds
from structural_scoring import (
    EMPTY_RECOMMENDATION,
    STRESS_PROFILES,
    StructuralConfig,
    analyze,
    build_recommendation,
    build_stress_recommendation,
    grade_for_score,
    string_seed,
    support_pattern_score,
)


@pytest.fixture
def floating_scene(make_part):
    """A grounded block plus a board hanging in the air far away."""
    return [
        make_part("ground", (12.0, 1.5, 12.0), (0.0, 0.75, 0.0)),
        make_part("floater", (1.5, 3.5, 20.0), (40.0, 50.0, 0.0)),
    ]


def _bridge_scene(make_part, with_second_support):
    """A plank resting on one block, optionally on a second block too."""
    parts = [
        make_part("plank", (20.0, 0.75, 3.5), (0.0, 10.375, 0.0)),
        make_part("block-left", (3.5, 10.0, 3.5), (-8.0, 5.0, 0.0)),
    ]
    if with_second_support:
        parts.append(make_part("block-right", (3.5, 10.0, 3.5), (8.0, 5.0, 0.0)))
    return parts


class TestEmptyInput:

    def test_no_parts(self):
        report = analyze([])
        assert report.overall_score == 0.0
        assert report.grade == "N/A"
        assert report.part_scores == {}
        assert report.part_fields == {}
        assert report.weak_part_ids == ()
        assert report.recommendation == EMPTY_RECOMMENDATION
        assert report.is_empty

    def test_only_hardware(self, make_screw, make_part):
        parts = [
            make_screw("s1", (0, 0, 0)),
            make_part(
                "h1", (2, 3, 0.1), (5, 0, 0),
                category=PartCategory.HARDWARE, hardware_kind=HardwareKind.HINGE,
            ),
        ]
        report = analyze(parts)
        assert report.grade == "N/A"
        assert report.part_scores == {}
        assert report.stats.part_count == 2
        assert report.stats.hardware_count == 2
        assert report.stats.fastener_count == 1
        assert report.stats.wood_part_count == 0


class TestDeterminism:

    def test_repeat_runs_are_identical(self, table_parts):
        assert analyze(table_parts).to_dict() == analyze(table_parts).to_dict()

    def test_permuted_input_gives_same_scores(self, table_parts, make_part):
        parts = table_parts + [
            make_part("shelf", (40.0, 0.75, 3.5), (0.0, 8.0, -10.0)),
            make_part("stray", (3.5, 3.5, 3.5), (60.0, 1.75, 0.0)),
        ]
        baseline = analyze(parts)
        shuffled = list(parts)
        random.Random(3).shuffle(shuffled)
        permuted = analyze(shuffled)
        assert permuted.overall_score == baseline.overall_score
        assert permuted.part_scores == baseline.part_scores
        assert set(permuted.weak_part_ids) == set(baseline.weak_part_ids)

    def test_kdtree_pairs_give_same_report(self, table_parts):
        assert (
            analyze(table_parts, pair_source=KDTreePairs()).to_dict()
            == analyze(table_parts).to_dict()
        )


class TestPartScores:

    def test_isolated_part_scores_near_zero(self, floating_scene):
        report = analyze(floating_scene)
        assert report.part_scores["floater"] <= 0.05
        assert "floater" in report.weak_part_ids

    def test_lone_part_rests_on_lowest_plane(self, make_part):
        # A single part is the assembly's lowest point, so it counts as
        # supported there even far above the floor.
        report = analyze([make_part("cube", (12.0, 12.0, 12.0), (0.0, 50.0, 0.0))])
        # 0.58 * 0.3 + 0.72 * 0.16 + 1.0 * 0.1 + 0.09
        assert report.part_scores["cube"] == pytest.approx(0.4792, abs=1e-9)
        assert report.part_fields["cube"].support_pattern_score == pytest.approx(0.72)
        assert report.weak_part_ids == ("cube",)
        assert report.stats.grounded_parts == 1
        assert report.stats.connected_groups == 1

    def test_isolation_penalty_is_configurable(self, floating_scene):
        strict = analyze(floating_scene)
        lenient = analyze(floating_scene, config=StructuralConfig(isolation_penalty=0.0))
        assert lenient.part_scores["floater"] >= strict.part_scores["floater"]

    def test_second_support_does_not_lower_score(self, make_part):
        single = analyze(_bridge_scene(make_part, with_second_support=False))
        double = analyze(_bridge_scene(make_part, with_second_support=True))
        assert double.part_scores["plank"] >= single.part_scores["plank"]
        assert (
            double.part_fields["plank"].support_pattern_score
            >= single.part_fields["plank"].support_pattern_score
        )

    def test_scores_are_clamped(self, table_parts):
        report = analyze(table_parts)
        assert all(0.0 <= s <= 1.0 for s in report.part_scores.values())

    def test_grounded_part_without_supports_gets_center_point(self, floating_scene):
        report = analyze(floating_scene)
        points = report.part_fields["ground"].support_points
        assert len(points) == 1
        assert points[0].intensity == pytest.approx(0.5)
        assert points[0].y == pytest.approx(0.0)

    def test_span_axis(self, table_parts):
        report = analyze(table_parts)
        assert report.part_fields["top"].primary_span_axis == "x"
        assert report.part_fields["leg-0"].primary_span_axis == "z"

    def test_field_points_stay_in_range(self, table_parts):
        report = analyze(table_parts, stress_scenario="impact-burst", stress_intensity=1.0)
        for field in report.part_fields.values():
            for point in field.support_points + field.load_points + field.fastener_points:
                assert 0.1 <= point.intensity <= 1.0


class TestAssemblyScore:

    def test_table_report(self, table_parts):
        report = analyze(table_parts)
        assert 0.08 <= report.overall_score <= 1.0
        assert report.grade == grade_for_score(report.overall_score)
        assert report.stats.connected_groups == 1
        assert report.stats.grounded_parts == 4
        assert report.stats.wood_part_count == 5
        assert report.stats.lumber_count == 4
        assert report.stats.sheet_count == 1

    def test_table_stats(self, table_parts):
        stats = analyze(table_parts).stats
        volume = 48 * 0.75 * 24 + 4 * 1.5 * 28.5 * 3.5
        assert stats.total_volume_cu_in == pytest.approx(volume)
        assert stats.total_volume_cu_ft == pytest.approx(volume / 1728)
        assert stats.estimated_weight_lb == pytest.approx(volume / 1728 * 34)
        assert stats.footprint_sq_ft == pytest.approx(48 * 24 / 144)
        assert stats.max_span_in == pytest.approx(48.0)
        assert stats.model_height_in == pytest.approx(29.25)
        # The top's center sits on the positive side of both split lines.
        assert stats.symmetry_score == pytest.approx(1.0 - 48 * 0.75 * 24 / volume)

    def test_disconnected_clusters_are_flagged(self, floating_scene):
        report = analyze(floating_scene)
        assert report.stats.connected_groups == 2
        assert report.recommendation.startswith("Multiple disconnected clusters")

    def test_bridging_screws_raise_engagement(self, butt_joint_parts, make_screw):
        screw = make_screw("s1", (0.0, 1.75, 48.0), rotation=(np.pi / 2, 0.0, 0.0))
        loose = make_screw("s2", (0.0, 1.75, 10.0))
        report = analyze(butt_joint_parts + [screw, loose])
        assert report.stats.fastener_count == 2
        assert report.stats.bridging_fasteners == 1
        assert report.stats.fastener_engagement == pytest.approx(0.5)
        assert report.part_fields["board-a"].fastener_points

    def test_score_never_reaches_zero(self, floating_scene):
        assert analyze(floating_scene).overall_score >= 0.08


class TestStressScenarios:

    @pytest.mark.parametrize("scenario", sorted(set(STRESS_PROFILES) - {"baseline"}))
    def test_stress_never_helps_weak_assemblies(self, scenario, table_parts):
        baseline = analyze(table_parts)
        stressed = analyze(table_parts, stress_scenario=scenario, stress_intensity=1.0)
        assert stressed.overall_score <= baseline.overall_score + 0.02
        assert stressed.stress.scenario == scenario
        assert stressed.stress.label == STRESS_PROFILES[scenario].label
        assert stressed.stress.score == stressed.overall_score

    def test_scenarios_add_load_points(self, table_parts):
        baseline = analyze(table_parts)
        stressed = analyze(table_parts, stress_scenario="vertical-load")
        assert (
            len(stressed.part_fields["top"].load_points)
            > len(baseline.part_fields["top"].load_points)
        )

    def test_unknown_scenario_falls_back_to_baseline(self, table_parts):
        report = analyze(table_parts, stress_scenario="earthquake")
        assert report.stress.scenario == "baseline"
        assert report.to_dict() == analyze(table_parts).to_dict()

    def test_intensity_is_clamped(self, table_parts):
        assert analyze(table_parts, stress_intensity=5.0).stress.intensity == 1.0
        assert analyze(table_parts, stress_intensity=-1.0).stress.intensity == 0.0

    def test_empty_report_carries_scenario(self):
        report = analyze([], stress_scenario="lateral-rack")
        assert report.stress.label == "Side Racking"
        assert report.stress.grade == "N/A"


class TestHelpers:

    @pytest.mark.parametrize("score, grade", [
        (0.95, "A+"), (0.9, "A+"), (0.85, "A"), (0.75, "B"),
        (0.65, "C"), (0.5, "D"), (0.2, "F"),
    ])
    def test_grade_bands(self, score, grade):
        assert grade_for_score(score) == grade

    def test_recommendation_priority(self):
        assert build_recommendation(0.9, 5, 2, 0.0).startswith("Multiple disconnected")
        assert build_recommendation(0.5, 5, 1, 0.1).startswith("Low fastener engagement")
        assert build_recommendation(0.5, 3, 1, 1.0).startswith("Several weak zones")
        assert build_recommendation(0.5, 1, 1, 1.0).startswith("Mostly stable")
        assert build_recommendation(0.9, 0, 1, 1.0).startswith("Strong load path")
        assert build_recommendation(0.7, 0, 1, 1.0).startswith("Moderate stability")

    def test_stress_recommendation(self):
        rack = STRESS_PROFILES["lateral-rack"]
        assert build_stress_recommendation(STRESS_PROFILES["baseline"], 0.9, 0, 1.0).startswith(
            "Baseline model only"
        )
        assert "side racking" in build_stress_recommendation(rack, 0.9, 0, 1.0)
        assert build_stress_recommendation(rack, 0.5, 0, 0.1).startswith("Weak under")
        assert build_stress_recommendation(rack, 0.5, 4, 1.0).startswith("Several hotspots")
        assert build_stress_recommendation(rack, 0.5, 0, 1.0).startswith("High-risk")

    def test_support_pattern_defaults(self, make_part):
        bounds = world_bounds(make_part("a", (10, 1, 10), (0, 0.5, 0)))
        assert support_pattern_score(bounds, [], grounded=True) == pytest.approx(0.72)
        assert support_pattern_score(bounds, [], grounded=False) == pytest.approx(0.18)

    def test_spread_supports_beat_one_corner(self, make_part):
        bounds = world_bounds(make_part("a", (10, 1, 10), (0, 0.5, 0)))
        corner = [StructuralPoint(x=-4.5, y=0.0, z=-4.5, intensity=1.0)]
        spread = [
            StructuralPoint(x=x, y=0.0, z=z, intensity=1.0)
            for x in (-3.0, 0.0, 3.0) for z in (-3.0, 0.0, 3.0)
        ]
        assert support_pattern_score(bounds, spread, False) > support_pattern_score(bounds, corner, False)

    def test_string_seed_is_stable(self):
        assert string_seed("") == 0
        assert string_seed("abc") == 96354
        assert string_seed("a-very-long-part-identifier") >= 0
