#!/usr/bin/env python3
"""
Complete Pipeline Demo: Survey → Simulated Responses → Classification → Bias

Shows the full workflow:
1. Build the example survey
2. Simulate attentive and inattentive respondents
3. Classify responses with each policy
4. Look for wording, order and breakoff effects
"""

import logging

import numpy as np

from surveyqc.analyzer import survey_entropy
from surveyqc.bias import (
    calculate_breakoff_by_position,
    calculate_breakoff_by_question,
    calculate_order_biases,
    calculate_wording_biases,
    get_frequencies_of_random_correlation,
)
from surveyqc.classifiers import Classifier, classify_responses
from surveyqc.config import QCConfig
from surveyqc.examples import build_example_survey
from surveyqc.respondent import AdversaryType, ProfileRespondent, simulate_responses
from surveyqc.response import KnownValidityStatus
from surveyqc.serialization import classifications_to_yaml
from surveyqc.session import QCSession

PROFILE = {
    "q1": [0.7, 0.3],
    "q2": [0.05, 0.1, 0.15, 0.4, 0.3],
    "q3a": [0.2, 0.3, 0.5],
    "q3b": [0.1, 0.2, 0.7],
    "q4": [0.5, 0.2, 0.2, 0.1],
    "q6": [0.4, 0.3, 0.15, 0.1, 0.05],
}


def main():
    logging.basicConfig(level=logging.WARNING)
    config = QCConfig(bootstrap_iterations=500, seed=2024)
    rng = np.random.default_rng(config.seed)

    print("=" * 80)
    print("COMPLETE PIPELINE DEMO: Survey → Responses → Classification → Bias")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Build survey
    # =========================================================================
    print("\n1. BUILDING SURVEY...")
    survey = build_example_survey()
    print(f"   ✓ Survey: {survey.name}")
    print(f"   ✓ Questions: {len(survey.questions)}")
    print(f"   ✓ Top-level blocks: {len(survey.top_level_blocks)}")

    # =========================================================================
    # STEP 2: Simulate respondents
    # =========================================================================
    print("\n2. SIMULATING RESPONDENTS...")
    honest = [ProfileRespondent(survey, PROFILE, rng).response for _ in range(80)]
    random_ = simulate_responses(survey, 20, AdversaryType.UNIFORM, rng)
    responses = honest + random_
    print(f"   ✓ Attentive: {len(honest)}")
    print(f"   ✓ Random: {len(random_)}")
    print(f"   ✓ Empirical entropy: {survey_entropy(survey, responses):.3f} bits")

    # =========================================================================
    # STEP 3: Classify
    # =========================================================================
    print("\n3. CLASSIFYING...")
    with QCSession(config, rng) as session:
        for classifier in (Classifier.LOG_LIKELIHOOD, Classifier.ENTROPY, Classifier.LPO, Classifier.CLUSTER):
            result = classify_responses(survey, responses, classifier, session)
            caught = sum(
                1 for s in result
                if not s.valid and s.response.known_validity_status == KnownValidityStatus.NO
            )
            print(f"   ✓ {classifier.name:15s} valid={result.num_valid:3d} "
                  f"invalid={result.num_invalid:3d} random caught={caught}")
        last = result

    # =========================================================================
    # STEP 4: Bias
    # =========================================================================
    print("\n4. LOOKING FOR BIAS...")
    wording = calculate_wording_biases(survey, responses, config.alpha)
    for c in wording.biased_pairs():
        print(f"   ! Wording bias between {c.question_a.id} and {c.question_b.id} (p={c.p_value:.4f})")
    order = calculate_order_biases(survey, responses, config.alpha, config)
    print(f"   ✓ Order pairs tested: {len(order)}, biased: {len(order.biased_pairs())}")
    prior = get_frequencies_of_random_correlation(survey, 100, rng)
    print(f"   ✓ Random-correlation prior over {len(prior)} question pairs")

    by_position = calculate_breakoff_by_position(survey, responses)
    by_question = calculate_breakoff_by_question(survey, responses)
    print(f"   ✓ Most common stopping position: {by_position.most_common(1)}")
    print(f"   ✓ Most common last question: "
          f"{[(q.id, ct) for q, ct in by_question.most_common(1)]}")

    # =========================================================================
    # STEP 5: Export
    # =========================================================================
    print("\n5. SAMPLE CLASSIFICATION EXPORT:")
    print("-" * 80)
    lines = classifications_to_yaml(last).split("\n")
    for line in lines[:12]:
        print(f"   {line}")
    if len(lines) > 12:
        print(f"   ... ({len(lines) - 12} more lines)")

    print("\n" + "=" * 80)
    print("PIPELINE COMPLETE!")
    print("=" * 80)


if __name__ == "__main__":
    main()
