"""
문서 수집(document-ingest) 핸들러

업로드된 문서를 읽어 청크로 나누고 문서 처리기(processor)에 넘깁니다.
청크 임베딩/저장은 처리기의 몫이며 기본 처리기는 로컬 텍스트 파일을 청크 단위로 분할합니다.

payload 예시:
{
    "document_id": "doc-1",
    "chatbot_id": "bot-1",
    "file_path": "uploads/a.pdf",
    "file_type": "pdf"
}
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Protocol

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from store.model import Priority
from worker.base import BaseHandler
from worker.exception import HandlerError, JobCancelledError
from worker.model.handler import ProgressReporter

logger = logging.getLogger(__name__)


class DocumentJobData(BaseModel):
    """문서 처리 입력"""
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(min_length=1, validation_alias=AliasChoices("file_path", "file"))
    document_id: str | None = None
    chatbot_id: str | None = None
    user_id: str | None = None
    file_name: str | None = None
    file_type: str | None = None

    @model_validator(mode="after")
    def _fill_from_path(self):
        path = PurePosixPath(self.file_path)
        if not self.file_name:
            self.file_name = path.name
        if not self.file_type:
            self.file_type = path.suffix.lstrip(".").lower() or None
        return self


class DocumentJobResult(BaseModel):
    """문서 처리 결과"""
    document_id: str | None = None
    file_name: str | None = None
    chunks_created: int = 0


class DocumentProcessor(Protocol):
    """문서 처리기 (청크 분할 + 임베딩/저장)"""

    async def process(self, data: DocumentJobData) -> int:
        """처리 후 생성된 청크 수 반환"""
        ...


class LocalTextProcessor:
    """
    로컬 텍스트 문서 처리기

    base_dir 아래의 텍스트 파일을 읽어 문단 단위로 chunk_size 이하 청크로 나눈다.
    """

    TEXT_TYPES = frozenset({"txt", "md", "markdown", "csv", "html", "json"})

    def __init__(self, base_dir: str | Path = ".", chunk_size: int = 1000):
        self._base_dir = Path(base_dir)
        self._chunk_size = chunk_size

    async def process(self, data: DocumentJobData) -> int:
        if data.file_type not in self.TEXT_TYPES:
            raise HandlerError(f"Unsupported file type for local processing: {data.file_type}")

        path = (self._base_dir / data.file_path).resolve()
        if not path.is_relative_to(self._base_dir.resolve()):
            raise HandlerError(f"Document path escapes base directory: {data.file_path}")
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            raise HandlerError(f"Document file not found: {data.file_path}")
        except UnicodeDecodeError as e:
            raise HandlerError(f"Document is not valid UTF-8 text: {e}")

        return len(self.chunk(text))

    def chunk(self, text: str) -> list[str]:
        chunks: list[str] = []
        current = ""
        for paragraph in (p.strip() for p in text.split("\n\n")):
            if not paragraph:
                continue
            if current and len(current) + len(paragraph) + 2 > self._chunk_size:
                chunks.append(current)
                current = ""
            current = f"{current}\n\n{paragraph}" if current else paragraph
            while len(current) > self._chunk_size:
                chunks.append(current[:self._chunk_size])
                current = current[self._chunk_size:]
        if current:
            chunks.append(current)
        return chunks


class DocumentIngestHandler(BaseHandler):
    """
    문서 수집 핸들러

    진행률: 10(시작) -> 20(처리 시작) -> 90(처리 완료) -> 100
    """

    payload_model = DocumentJobData

    def __init__(self, processor: DocumentProcessor):
        self._processor = processor

    def priority_for(self, payload: DocumentJobData) -> int:
        # PDF 먼저
        return Priority.HIGH if payload.file_type == "pdf" else Priority.NORMAL

    async def execute(
        self,
        payload: DocumentJobData,
        progress: ProgressReporter,
        cancel_event: asyncio.Event,
    ) -> DocumentJobResult:
        logger.info(f"Processing document: id={payload.document_id}, file={payload.file_name}")
        await progress(10)

        if cancel_event.is_set():
            raise JobCancelledError()
        await progress(20)

        chunks_created = await self._processor.process(payload)
        await progress(90)

        logger.info(
            f"Document processed: id={payload.document_id}, chunks={chunks_created}"
        )
        await progress(100)
        return DocumentJobResult(
            document_id=payload.document_id,
            file_name=payload.file_name,
            chunks_created=chunks_created,
        )


def create_handler() -> DocumentIngestHandler:
    """기본 핸들러 (로컬 텍스트 처리기)"""
    return DocumentIngestHandler(LocalTextProcessor())
