from __future__ import annotations

import pytest
from conftest import (
    StubInferenceClient,
    answers_result,
    interview_result,
    matrix_result,
    resume_result,
)

from stagegate.core.evaluators import (
    AnsweredQuestion,
    AnswerSetEvaluator,
    AnswerSetEvaluatorConfig,
    CallArtifacts,
    InterviewEvaluator,
    InterviewEvaluatorConfig,
    JobContext,
    ResumeEvaluator,
    ResumeEvaluatorConfig,
)
from stagegate.core.results import AnswerSetDetail, InterviewDetail, ResumeDetail
from stagegate.errors import EvaluatorError, InferenceError, InputMissingError


@pytest.fixture
def job() -> JobContext:
    return JobContext(
        title="Backend Engineer",
        description="Build and run APIs. " * 200,
        requirements=["Python", "SQL"],
        responsibilities=["Own services"],
    )


def answered(count: int = 2) -> list[AnsweredQuestion]:
    return [
        AnsweredQuestion(answer_id=f"a{idx}", question=f"Question {idx}?", answer=f"Answer {idx}.")
        for idx in range(1, count + 1)
    ]


# -- resume --------------------------------------------------------------


def test_resume_evaluator_builds_matrix_and_detail(job):
    client = StubInferenceClient({"evaluation_matrix": resume_result(8, 7, 6)})
    evaluation = ResumeEvaluator(client=client).evaluate("  Python developer  ", job)

    assert client.names() == ["evaluation_matrix"]
    assert evaluation.stage_number == 1
    assert evaluation.score == 7.15
    assert evaluation.summary == "Solid backend engineer."
    assert isinstance(evaluation.detail, ResumeDetail)
    assert evaluation.detail.strengths == [
        "Skills: python, sql",
        "Experience: 5 years backend",
        "Education: Relevant degree.",
    ]
    assert evaluation.detail.concerns == ["Missing skills: aws", "Cloud experience unclear"]


def test_resume_strengths_fall_back_when_nothing_matches(job):
    payload = resume_result(2, 2, 3)
    payload["skillsMatch"]["found"] = []
    payload["experienceMatch"]["match"] = False
    client = StubInferenceClient({"evaluation_matrix": payload})

    evaluation = ResumeEvaluator(client=client).evaluate("Resume", job)

    assert evaluation.detail.strengths == ["Resume submitted"]


def test_resume_prompt_truncates_inputs(job):
    client = StubInferenceClient({"evaluation_matrix": resume_result()})
    config = ResumeEvaluatorConfig(resume_chars=20, description_chars=10)
    ResumeEvaluator(client=client, config=config).evaluate("R" * 100, job)

    prompt = client.calls[0]["user_prompt"]
    assert "R" * 20 in prompt
    assert "R" * 21 not in prompt
    assert "Description: Build and \n" in prompt
    assert '"Python", "SQL"' in prompt


def test_resume_evaluator_requires_text(job):
    client = StubInferenceClient({"evaluation_matrix": resume_result()})
    with pytest.raises(InputMissingError):
        ResumeEvaluator(client=client).evaluate("   ", job)
    assert client.calls == []


def test_resume_schema_drift_is_an_evaluator_error(job):
    client = StubInferenceClient({"evaluation_matrix": {"summary": "no scores"}})
    with pytest.raises(EvaluatorError, match="evaluation_matrix"):
        ResumeEvaluator(client=client).evaluate("Resume", job)


# -- answers -------------------------------------------------------------


def test_answer_set_runs_two_calls_in_order(job):
    client = StubInferenceClient(
        {
            "stage2_evaluation": answers_result(9, 12),
            "stage2_matrix": matrix_result(8, 6, 7),
        }
    )
    evaluation = AnswerSetEvaluator(client=client).evaluate(answered(2), job)

    assert client.names() == ["stage2_evaluation", "stage2_matrix"]
    assert evaluation.score == 7.1
    assert evaluation.summary == "Clear and relevant answers."
    assert isinstance(evaluation.detail, AnswerSetDetail)
    assert [(f.answer_id, f.score) for f in evaluation.detail.answers] == [("a1", 9.0), ("a2", 10.0)]

    schema = client.calls[0]["schema"]["properties"]["evaluations"]
    assert schema["minItems"] == schema["maxItems"] == 2
    assert "exactly 2 evaluations" in client.calls[0]["system_prompt"]
    assert "Q1: Question 1?\nA1: Answer 1." in client.calls[0]["user_prompt"]
    assert "per-answer scores (for context): 9, 10" in client.calls[1]["user_prompt"]


def test_answer_count_mismatch_fails_before_matrix_call(job):
    client = StubInferenceClient(
        {
            "stage2_evaluation": answers_result(7),
            "stage2_matrix": matrix_result(),
        }
    )
    with pytest.raises(EvaluatorError, match="Evaluation count mismatch: expected 3, got 1"):
        AnswerSetEvaluator(client=client).evaluate(answered(3), job)
    assert client.names() == ["stage2_evaluation"]


def test_answer_qa_block_is_truncated_for_matrix(job):
    client = StubInferenceClient(
        {"stage2_evaluation": answers_result(5), "stage2_matrix": matrix_result()}
    )
    config = AnswerSetEvaluatorConfig(qa_block_chars=8)
    AnswerSetEvaluator(client=client, config=config).evaluate(answered(1), job)

    assert "Q&A:\nQ1: Ques\n\n" in client.calls[1]["user_prompt"]


def test_answer_set_requires_answers(job):
    with pytest.raises(InputMissingError):
        AnswerSetEvaluator(client=StubInferenceClient()).evaluate([], job)


# -- interview -----------------------------------------------------------


def test_interview_evaluator_scores_transcript(job):
    client = StubInferenceClient({"stage3_evaluation": interview_result(8, 7, 6)})
    call = CallArtifacts(
        transcript="Assistant: Hi\nUser: Hello",
        call_id="call-1",
        recording_url="https://rec.example/1.wav",
        duration_seconds=312,
    )
    evaluation = InterviewEvaluator(client=client).evaluate(call, job)

    assert evaluation.score == 7.15
    assert evaluation.summary is None
    detail = evaluation.detail
    assert isinstance(detail, InterviewDetail)
    assert detail.call_id == "call-1"
    assert detail.duration_seconds == 312
    assert detail.scores == {"communication": 8.0, "problem_solving": 7.0, "role_understanding": 6.0}
    assert detail.strengths == ["Structured answers"]
    assert detail.weaknesses == ["Limited cloud depth"]


def test_interview_rationales_and_prompt_are_bounded(job):
    payload = interview_result()
    payload["communicationRationale"] = "r" * 50
    client = StubInferenceClient({"stage3_evaluation": payload})
    config = InterviewEvaluatorConfig(transcript_chars=5, rationale_chars=12)

    evaluation = InterviewEvaluator(client=client, config=config).evaluate(
        CallArtifacts(transcript="abcdefghij"), job
    )

    assert evaluation.matrix.dimensions[0].rationale == "r" * 12
    assert client.calls[0]["user_prompt"].endswith("Interview transcript:\nabcde")


def test_interview_inference_failure_propagates(job):
    client = StubInferenceClient({"stage3_evaluation": InferenceError("timed out")})
    with pytest.raises(InferenceError):
        InterviewEvaluator(client=client).evaluate(CallArtifacts(transcript="User: hi"), job)


def test_call_artifacts_detail_has_no_scores():
    detail = CallArtifacts(transcript="User: hi", call_id="c").detail()
    assert detail.scores is None
    assert detail.strengths == []
