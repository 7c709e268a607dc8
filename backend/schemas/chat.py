from pydantic import BaseModel, Field

from backend.schemas.report import CamelModel, TestsData


class ChatMessageIn(BaseModel):
    role: str = Field(pattern="^(user|assistant)$")
    content: str


class ReportChatMetadata(CamelModel):
    patient_name: str | None = None
    patient_age: str | None = None
    patient_sex: str | None = None
    referring_doctor: str | None = None
    lab_name: str | None = None
    sample_date: str | None = None
    report_date: str | None = None
    lab_director: str | None = None
    lab_contact: str | None = None


class ReportChatContext(CamelModel):
    metadata: ReportChatMetadata | None = None
    tests_data: TestsData | None = None


class ChatRequest(CamelModel):
    messages: list[ChatMessageIn] = Field(min_length=1)
    report_context: ReportChatContext | None = None
