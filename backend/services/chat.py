from backend.schemas.chat import ReportChatContext
from backend.schemas.report import TestsData

SYSTEM_PROMPT = (
    "You are a specialized assistant focused exclusively on explaining the provided medical blood test "
    "report data to the patient. Your goal is to help the user understand their results in a clear, concise "
    "and empathetic manner. Strictly limit your responses to the information contained within the report "
    "context (metadata and test results) and general medical knowledge directly relevant to interpreting "
    "these specific tests. Do not provide medical diagnoses, treatment plans or prognoses. Always recommend "
    "consulting a healthcare professional for such matters. If asked a question outside the scope of this "
    "report or general medical test interpretation (e.g. current events, history, unrelated science, personal "
    "opinions), politely refuse to answer, stating that you are specialized in explaining this medical report only."
)


def _describe(test) -> str:
    line = f"{test.test}: {test.result}"
    if test.unit:
        line += f" {test.unit}"
    if test.interpretation:
        line += f" ({test.interpretation})"
    return line


def summarize_tests_data(tests_data: TestsData) -> str:
    summary = ""
    if tests_data.gauge:
        summary += "\nKey Gauge Results:"
        for test in tests_data.gauge:
            summary += f"\n- {_describe(test)}"
    if tests_data.table:
        summary += "\n\nGrouped Table Results:"
        for group in tests_data.table:
            summary += f"\n- {group.group}:"
            for test in group.tests:
                summary += f"\n  - {_describe(test)}"
    return f"\n\nAvailable Test Results Summary:{summary}" if summary.strip() else ""


def build_system_prompt(context: ReportChatContext | None) -> str:
    prompt = SYSTEM_PROMPT
    if context is None:
        return prompt

    meta = context.metadata
    if meta:
        parts = []
        if meta.patient_name:
            parts.append(f"patient's name is {meta.patient_name}")
        if meta.patient_age:
            parts.append(f"age {meta.patient_age}")
        if meta.patient_sex:
            parts.append(f"sex {meta.patient_sex}")
        if meta.referring_doctor:
            parts.append(f"referring doctor {meta.referring_doctor}")
        if meta.lab_name:
            parts.append(f"lab {meta.lab_name}")
        if meta.sample_date:
            parts.append(f"sample date {meta.sample_date}")
        if meta.report_date:
            parts.append(f"report date {meta.report_date}")
        if parts:
            prompt += f"\n\nThe current report context is for a patient identified as: {', '.join(parts)}."

    if context.tests_data:
        prompt += summarize_tests_data(context.tests_data)
    return prompt
