from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

NOT_FOUND = "not found"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportFile(CamelModel):
    """Reference to one uploaded object in storage."""
    file_path: str = Field(min_length=1, description="Storage key of the uploaded file")
    file_name: str = Field(min_length=1, description="Original name of the uploaded file")
    file_type: str = Field(min_length=1, description="MIME type of the uploaded file")
    file_size: int = Field(ge=0, description="Size of the file in bytes")


class ReferenceRange(CamelModel):
    """Normal range for a test. Numeric bounds where possible, text otherwise (e.g. '< 150')."""
    min: float | None = Field(default=None, description="Lower bound of the normal range")
    max: float | None = Field(default=None, description="Upper bound of the normal range")
    text: str | None = Field(default=None, description="Range as written when it is not a simple min-max pair")


class ExtractedTest(CamelModel):
    """Single blood test result as read from the report."""
    test: str = Field(description="Name of the blood test, e.g. 'Hemoglobin (Hb)'")
    result: float | str = Field(description="Measured value, numeric where possible or text like 'Not Detected'")
    unit: str | None = Field(default=None, description="Unit of measurement, e.g. 'g/dL'")
    reference_range: ReferenceRange | None = Field(default=None, description="Normal reference range")
    interpretation: str | None = Field(default=None, description="Interpretation printed on the report (High, Low, Normal)")
    gauge_min: float | None = Field(default=None, description="Absolute minimum for dial visualization")
    gauge_max: float | None = Field(default=None, description="Absolute maximum for dial visualization")


class ExtractedTestGroup(CamelModel):
    """Panel of related tests, e.g. 'CBC' or 'Liver Function'."""
    group: str = Field(description="Panel or section name")
    tests: list[ExtractedTest] = Field(default_factory=list)


class ExtractedTestsData(CamelModel):
    """Blood test results split into headline gauge tests and grouped table tests."""
    gauge: list[ExtractedTest] = Field(
        default_factory=list,
        description="Key biomarkers suited to a dial (hemoglobin, glucose, lipid panel components)",
    )
    table: list[ExtractedTestGroup] = Field(
        default_factory=list,
        description="Remaining tests grouped into panels",
    )


class ReportMetadata(CamelModel):
    """Structured representation of key information extracted from medical report(s)."""
    title: str = Field(description="Title of the report, generated from the report content")
    patient_name: str = Field(default=NOT_FOUND, description="Patient's full name")
    patient_sex: str = Field(default=NOT_FOUND, description="Patient's sex (e.g. Male, Female)")
    patient_age: str = Field(default=NOT_FOUND, description="Patient's age (e.g. 35 years, 6 months)")
    lab_name: str = Field(default=NOT_FOUND, description="Name of the laboratory")
    referring_doctor: str = Field(default=NOT_FOUND, description="Name of the referring doctor")
    sample_date: str = Field(default=NOT_FOUND, description="Date the sample was collected, as written")
    report_date: str = Field(default=NOT_FOUND, description="Date the report was issued, as written")
    lab_director: str = Field(default=NOT_FOUND, description="Name of the lab director")
    lab_contact: str = Field(default=NOT_FOUND, description="Contact information for the lab")


class WhatItIs(CamelModel):
    definition: str = Field(description="Simple explanation of the substance or marker being tested")
    purpose: str = Field(description="Why the test is commonly performed, in simple terms")
    body_system: str | None = Field(default=None, description="Primary body system related to the test")


class UnderstandingResults(CamelModel):
    normal_range_explanation: str = Field(
        description="What the reference range means, including units and lab-to-lab variation"
    )
    units_explained: str | None = Field(default=None, description="What the measurement unit means")


class AbnormalDirection(CamelModel):
    title: str
    potential_causes: str = Field(description="Common possible reasons, in cautious non-diagnostic language")
    potential_implications: str = Field(description="What the deviation might mean, without alarmist language")


class AbnormalResults(CamelModel):
    low: AbnormalDirection | None = None
    high: AbnormalDirection | None = None
    general_disclaimer: str = Field(
        description="Reminder that these are general possibilities, not a diagnosis"
    )


class SymptomsAndActions(CamelModel):
    associated_symptoms: str | None = Field(
        default=None,
        description="Symptoms possibly linked to significant deviations, with caveats about non-specificity",
    )
    when_to_seek_help: str = Field(
        description="Guidance to consult a healthcare provider for abnormal results, concerns or symptoms"
    )


class LifestyleTips(CamelModel):
    title: str = "Lifestyle and Wellness Tips"
    general_tips: str = Field(description="General, safe diet, exercise or habit advice")
    prevention_focus: str | None = None
    disclaimer: str = Field(description="Reminder that tips do not replace personalised medical advice")


class GlossaryEntry(CamelModel):
    term: str
    definition: str


class FaqEntry(CamelModel):
    question: str
    answer: str


class AdditionalResources(CamelModel):
    glossary: list[GlossaryEntry] | None = None
    faq: list[FaqEntry] | None = None
    final_disclaimer: str = Field(
        description=(
            "Mandatory disclaimer: educational information only, not a substitute for professional "
            "medical advice, diagnosis or treatment; consult a healthcare provider"
        )
    )


class EducationalInfo(CamelModel):
    """Patient-facing educational explanation of one blood test result."""
    schema_version: Literal[1] = 1
    test_name: str = Field(description="Common name of the blood test")
    what_it_is: WhatItIs
    understanding_results: UnderstandingResults
    abnormal_results: AbnormalResults
    symptoms_and_actions: SymptomsAndActions
    lifestyle_tips: LifestyleTips
    additional_resources: AdditionalResources


class TestResult(ExtractedTest):
    id: str
    educational_info: EducationalInfo | None = None


class TestGroup(CamelModel):
    group: str
    tests: list[TestResult] = Field(default_factory=list)


class TestsData(CamelModel):
    gauge: list[TestResult] = Field(default_factory=list)
    table: list[TestGroup] = Field(default_factory=list)

    def iter_tests(self):
        yield from self.gauge
        for group in self.table:
            yield from group.tests

    def find_test(self, test_id: str) -> TestResult | None:
        for test in self.iter_tests():
            if test.id == test_id:
                return test
        return None


class PatientContext(CamelModel):
    name: str | None = None
    age: str | None = None
    gender: str | None = None


class SignedUrlRequest(CamelModel):
    file_name: str = Field(min_length=1)
    file_type: str = Field(min_length=1)
    file_size: int = Field(gt=0)


class CreateRecordRequest(CamelModel):
    uploaded_files: list[ReportFile] = Field(min_length=1)


class EducationRequest(CamelModel):
    patient: PatientContext | None = None
