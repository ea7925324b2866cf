"""
Example surveys used by the demos and the test suite.

build_example_survey() covers every structural feature: a branch
question, a randomizable block, a block of wording variants, ordered
and unordered scales, a checkbox question and a freetext question.
"""
from typing import List, Sequence

from surveyqc.model import Block, BranchParadigm, Question, Survey, SurveyDatum


def _question(qid: str, text: str, row: int, option_texts: Sequence[str], **kwargs) -> Question:
    # options sit on the rows directly below their question
    options = [
        SurveyDatum(id=f"{qid}_o{i + 1}", text=t, source_row=row + i + 1)
        for i, t in enumerate(option_texts)
    ]
    return Question(id=qid, text=text, options=options, source_row=row, **kwargs)


AGREEMENT = ["Strongly disagree", "Disagree", "Neutral", "Agree", "Strongly agree"]


def build_example_survey() -> Survey:
    # Block 1: branch on car ownership
    owns_car = _question("q1", "Do you own a car?", 1, ["Yes", "No"], randomize=False)
    block1 = Block(id="1", questions=[owns_car], branch_question=owns_car,
                   branch_paradigm=BranchParadigm.ONE)

    # Block 2: car owners only, with a pair of wording variants
    satisfaction = _question("q2", "I am satisfied with my car.", 4, AGREEMENT, ordered=True)
    variant_a = _question("q3a", "Fuel prices are too high.", 10, ["Disagree", "Neutral", "Agree"], ordered=True)
    variant_b = _question("q3b", "Fuel is overpriced.", 14, ["Disagree", "Neutral", "Agree"], ordered=True)
    variants = Block(id="2.1", questions=[variant_a, variant_b], branch_paradigm=BranchParadigm.ALL)
    block2 = Block(id="2", questions=[satisfaction], sub_blocks=[variants])

    # Block 3: everyone
    commute = _question("q4", "How do you usually commute?", 18, ["Walk", "Cycle", "Bus", "Train"])
    transport = _question("q5", "Which of these have you used this month?", 23,
                          ["Taxi", "Ferry", "Tram", "Scooter"], exclusive=False)
    block3 = Block(id="3", questions=[commute, transport])

    # Block 4: shown to everyone at a random position
    traffic = _question("q6", "Traffic in my town is manageable.", 28, AGREEMENT, ordered=True)
    comments = Question(id="q7", text="Any other comments?", freetext=True, source_row=34)
    block4 = Block(id="4", questions=[traffic, comments], randomizable=True)

    owns_car.branch_map = {
        owns_car.options[0]: block2,
        owns_car.options[1]: block3,
    }

    return Survey(
        name="Example Transport Survey",
        top_level_blocks=[block1, block2, block3, block4],
        metadata={"source": "examples.py"},
    )


def build_flat_survey(n_questions: int = 3, n_options: int = 2) -> Survey:
    """One fixed block of ``n_questions`` exclusive questions."""
    questions: List[Question] = []
    row = 1
    for i in range(1, n_questions + 1):
        texts = [f"Option {j}" for j in range(1, n_options + 1)]
        questions.append(_question(f"q_1_{i}", f"Question {i}", row, texts))
        row += n_options + 1
    return Survey(name="Flat Survey", top_level_blocks=[Block(id="1", questions=questions)])
