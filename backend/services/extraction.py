import asyncio
import logging
import mimetypes
import os
import tempfile
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel

from backend.config import Settings
from backend.errors import ConfigurationError, ExtractionError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

PROMPT_TEMPLATE = """
{instructions}

{documents}
"""


@dataclass
class TextPart:
    text: str


@dataclass
class FilePart:
    data: bytes
    mime_type: str
    file_name: str = "report"


ContentPart = TextPart | FilePart


@dataclass
class ChatTurn:
    role: str
    content: str


def _suffix_for(part: FilePart) -> str:
    suffix = os.path.splitext(part.file_name)[1]
    if suffix:
        return suffix
    return mimetypes.guess_extension(part.mime_type) or ".pdf"


class ExtractionClient:
    """Turns report files plus instructions into a schema-conformant pydantic object.

    Files go through LlamaParse (PDFs and images alike) and the parsed text is
    handed to an OpenAI function-calling program for the requested schema.
    Clients are created on first use, once, behind a lock.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._llms: dict[str, object] = {}
        self._parser = None
        self._lock = asyncio.Lock()

    async def _llm(self, model: str):
        if model in self._llms:
            return self._llms[model]
        async with self._lock:
            if model not in self._llms:
                if not self.settings.openai_api_key:
                    raise ConfigurationError("OPENAI_API_KEY is missing")
                try:
                    from llama_index.llms.openai import OpenAI
                except ImportError as exc:
                    raise ConfigurationError("llama_index is not installed") from exc
                self._llms[model] = OpenAI(model=model, api_key=self.settings.openai_api_key, temperature=0.0)
                logger.info("LLM client initialized for model %s", model)
        return self._llms[model]

    async def _document_parser(self):
        if self._parser is not None:
            return self._parser
        async with self._lock:
            if self._parser is None:
                if not self.settings.llama_cloud_api_key:
                    raise ConfigurationError("LLAMA_CLOUD_API_KEY is missing")
                try:
                    from llama_parse import LlamaParse
                except ImportError as exc:
                    raise ConfigurationError("llama_parse is not installed") from exc
                self._parser = LlamaParse(
                    api_key=self.settings.llama_cloud_api_key,
                    use_vendor_multimodal_model=True,
                    vendor_multimodal_model_name="openai-gpt4o",
                    high_res_ocr=True,
                    result_type="text",
                )
        return self._parser

    async def _parse_file(self, part: FilePart) -> str:
        parser = await self._document_parser()
        with tempfile.NamedTemporaryFile(suffix=_suffix_for(part)) as tmp:
            tmp.write(part.data)
            tmp.flush()
            documents = await parser.aload_data(tmp.name, extra_info={"file_name": os.path.basename(part.file_name)})
        return "\n\n".join(doc.text for doc in documents)

    async def generate_object(self, parts: list[ContentPart], output_cls: type[ModelT]) -> ModelT:
        instructions = [p.text for p in parts if isinstance(p, TextPart)]
        files = [p for p in parts if isinstance(p, FilePart)]

        # Configuration problems propagate untouched; everything else is an extraction failure.
        llm = await self._llm(self.settings.openai_model)
        if files:
            await self._document_parser()

        try:
            from llama_index.program.openai import OpenAIPydanticProgram
        except ImportError as exc:
            raise ConfigurationError("llama_index openai program is not installed") from exc

        try:
            sections = []
            for index, part in enumerate(files, start=1):
                text = await self._parse_file(part)
                sections.append(f"--- Document {index}: {part.file_name} ({part.mime_type}) ---\n{text}")
            program = OpenAIPydanticProgram.from_defaults(
                output_cls=output_cls,
                llm=llm,
                prompt_template_str=PROMPT_TEMPLATE,
            )
            result = await program.acall(
                instructions="\n\n".join(instructions),
                documents="\n\n".join(sections),
            )
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.exception("Structured extraction for %s failed", output_cls.__name__)
            raise ExtractionError(str(exc) or "AI processing error") from exc

        if not isinstance(result, output_cls):
            raise ExtractionError(f"AI response did not match the {output_cls.__name__} schema")
        return result

    async def stream_chat(self, system_prompt: str, turns: list[ChatTurn]) -> AsyncIterator[str]:
        from llama_index.core.llms import ChatMessage

        llm = await self._llm(self.settings.chat_model)
        messages = [ChatMessage(role="system", content=system_prompt)]
        messages.extend(ChatMessage(role=turn.role, content=turn.content) for turn in turns)
        stream = await llm.astream_chat(messages)
        async for chunk in stream:
            if chunk.delta:
                yield chunk.delta

    async def ensure_chat_ready(self) -> None:
        await self._llm(self.settings.chat_model)
