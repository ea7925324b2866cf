"""
Demo: Run analyzer on the example transport survey and output the report.
"""

import logging

import numpy as np

from surveyqc.analyzer import analyze_survey
from surveyqc.config import QCConfig
from surveyqc.examples import build_example_survey
from surveyqc.serialization import survey_to_yaml


def print_report(report):
    """Pretty-print a SurveyReport."""
    print()
    print("=" * 70)
    print(f"SURVEY ANALYSIS REPORT: {report.survey_name}")
    print("=" * 70)
    print()

    print("📊 BASIC METRICS")
    print(f"  Total Blocks:          {report.total_blocks}")
    print(f"  Top-level Blocks:      {report.total_top_level_blocks}")
    print(f"  Total Questions:       {report.total_questions}")
    print(f"  Randomizable Blocks:   {report.randomizable_blocks}")
    print(f"  Variant Blocks:        {report.variant_blocks}")
    print(f"  Branch Questions:      {report.branch_questions}")
    print()

    print("🔗 PATHS")
    print(f"  Paths:                 {report.num_paths}")
    print(f"  Min Path Length:       {report.min_path_length}")
    print(f"  Max Path Length:       {report.max_path_length}")
    print(f"  Avg Path Length:       {report.avg_path_length:.2f}")
    print(f"  Unreachable Blocks:    {report.unreachable_blocks if report.unreachable_blocks else 'None'}")
    print()

    print("📐 INFORMATION")
    print(f"  Max Possible Entropy:  {report.max_possible_entropy:.2f} bits")
    print()

    if report.warnings:
        print("⚠️  WARNINGS")
        for i, warning in enumerate(report.warnings, 1):
            print(f"  {i}. {warning}")
    else:
        print("✨ NO WARNINGS - Survey looks clean!")
    print()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # Build example survey
    survey = build_example_survey()

    # Analyze it
    config = QCConfig(path_length_samples=1000, seed=7)
    report = analyze_survey(survey, config, rng=np.random.default_rng(config.seed))

    # Print report
    print_report(report)

    # Also save to YAML for inspection
    yaml_str = survey_to_yaml(survey)
    with open("example_survey_output.yaml", "w") as f:
        f.write(yaml_str)
    print(f"✅ Survey exported to example_survey_output.yaml")
