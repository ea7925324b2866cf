"""
Serialization helpers for surveyqc objects (Survey, SurveyResponse, QC results).

Provides lossless JSON/YAML round-trip of the survey model via an
intermediate dict representation. Branch maps are written as
option id -> block id and resolved again on load.
This module intentionally keeps serialization structure stable and explicit.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

import yaml

from surveyqc.classifiers import ClassifiedRespondents
from surveyqc.errors import MalformedSurveyError
from surveyqc.model import Block, BranchParadigm, Question, Survey, SurveyDatum
from surveyqc.response import KnownValidityStatus, OptionSelection, QuestionResponse, SurveyResponse


def option_to_dict(o: SurveyDatum) -> Dict[str, Any]:
    return {"id": o.id, "text": o.text, "source_row": o.source_row}


def option_from_dict(d: Dict[str, Any]) -> SurveyDatum:
    return SurveyDatum(id=d["id"], text=d.get("text", ""), source_row=d.get("source_row", 0))


def question_to_dict(q: Question) -> Dict[str, Any]:
    return {
        "id": q.id,
        "text": q.text,
        "options": [option_to_dict(o) for o in q.options],
        "exclusive": q.exclusive,
        "ordered": q.ordered,
        "randomize": q.randomize,
        "freetext": q.freetext,
        "custom": q.custom,
        "source_row": q.source_row,
        "branch_map": {opt.id: block.id for opt, block in q.branch_map.items()},
    }


def question_from_dict(d: Dict[str, Any]) -> Question:
    """Build a Question; its branch map is resolved later by survey_from_dict."""
    return Question(
        id=d["id"],
        text=d.get("text", ""),
        options=[option_from_dict(o) for o in d.get("options", [])],
        exclusive=d.get("exclusive", True),
        ordered=d.get("ordered", False),
        randomize=d.get("randomize", True),
        freetext=d.get("freetext", False),
        custom=d.get("custom", False),
        source_row=d.get("source_row", 0),
    )


def block_to_dict(b: Block) -> Dict[str, Any]:
    return {
        "id": b.id,
        "randomizable": b.randomizable,
        "branch_paradigm": b.branch_paradigm.value,
        "branch_question": b.branch_question.id if b.branch_question is not None else None,
        "questions": [question_to_dict(q) for q in b.questions],
        "sub_blocks": [block_to_dict(sub) for sub in b.sub_blocks],
    }


def _block_from_dict(d: Dict[str, Any], pending: List[Tuple[Question, Dict[str, str]]]) -> Block:
    questions = []
    for qd in d.get("questions", []):
        q = question_from_dict(qd)
        if qd.get("branch_map"):
            pending.append((q, qd["branch_map"]))
        questions.append(q)

    branch_question = None
    if d.get("branch_question") is not None:
        for q in questions:
            if q.id == d["branch_question"]:
                branch_question = q
                break
        else:
            raise MalformedSurveyError(
                f"Block {d['id']} names branch question {d['branch_question']}, which it does not hold"
            )

    return Block(
        id=d["id"],
        questions=questions,
        sub_blocks=[_block_from_dict(sub, pending) for sub in d.get("sub_blocks", [])],
        randomizable=d.get("randomizable", False),
        branch_paradigm=BranchParadigm(d.get("branch_paradigm", BranchParadigm.NONE.value)),
        branch_question=branch_question,
    )


def block_from_dict(d: Dict[str, Any]) -> Block:
    """Build a Block without resolving branch maps."""
    return _block_from_dict(d, [])


def survey_to_dict(s: Survey) -> Dict[str, Any]:
    return {
        "name": s.name,
        "blocks": [block_to_dict(b) for b in s.top_level_blocks],
        "metadata": s.metadata,
    }


def survey_from_dict(d: Dict[str, Any]) -> Survey:
    pending: List[Tuple[Question, Dict[str, str]]] = []
    blocks = [_block_from_dict(bd, pending) for bd in d.get("blocks", [])]
    survey = Survey(name=d.get("name", ""), top_level_blocks=blocks, metadata=d.get("metadata", {}))

    for q, raw_map in pending:
        for oid, bid in raw_map.items():
            opt = q.get_option(oid)
            dest = survey.get_block(bid)
            if opt is None:
                raise MalformedSurveyError(f"Question {q.id} branches on unknown option {oid}")
            if dest is None:
                raise MalformedSurveyError(f"Question {q.id} branches to unknown block {bid}")
            q.branch_map[opt] = dest
    return survey


def survey_to_json(s: Survey) -> str:
    return json.dumps(survey_to_dict(s), sort_keys=True)


def survey_from_json(s: str) -> Survey:
    d = json.loads(s)
    return survey_from_dict(d)


def survey_to_yaml(s: Survey) -> str:
    return yaml.safe_dump(survey_to_dict(s))


def survey_from_yaml(s: str) -> Survey:
    d = yaml.safe_load(s)
    return survey_from_dict(d)


def response_to_dict(sr: SurveyResponse) -> Dict[str, Any]:
    return {
        "id": sr.id,
        "responses": [
            {
                "question": qr.question.id,
                "options": [{"id": sel.option.id, "index": sel.index} for sel in qr.selections],
                "index_seen": qr.index_seen,
            }
            for qr in sr.responses
        ],
        "score": sr.score,
        "threshold": sr.threshold,
        "known_validity_status": sr.known_validity_status.value,
        "computed_validity_status": sr.computed_validity_status.value,
        "cluster_label": sr.cluster_label,
    }


def response_from_dict(d: Dict[str, Any], survey: Survey) -> SurveyResponse:
    """Rebuild a response against the survey it answered."""
    responses = []
    for qd in d.get("responses", []):
        q = survey.get_question(qd["question"])
        if q is None:
            raise MalformedSurveyError(f"Response {d.get('id')} answers unknown question {qd['question']}")
        selections = []
        for od in qd.get("options", []):
            opt: Optional[SurveyDatum] = q.get_option(od["id"])
            if opt is None:
                raise MalformedSurveyError(f"Question {q.id} has no option {od['id']}")
            selections.append(OptionSelection(option=opt, index=od.get("index", 0)))
        responses.append(QuestionResponse(question=q, selections=tuple(selections), index_seen=qd.get("index_seen", 0)))

    return SurveyResponse(
        id=d["id"],
        responses=responses,
        score=d.get("score", 0.0),
        threshold=d.get("threshold"),
        known_validity_status=KnownValidityStatus(d.get("known_validity_status", "maybe")),
        computed_validity_status=KnownValidityStatus(d.get("computed_validity_status", "maybe")),
        cluster_label=d.get("cluster_label"),
    )


def classifications_to_yaml(classified: ClassifiedRespondents) -> str:
    return yaml.safe_dump({
        "num_valid": classified.num_valid,
        "num_invalid": classified.num_invalid,
        "classifications": classified.to_dicts(),
    })
