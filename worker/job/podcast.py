"""
팟캐스트 생성(podcast-generate) 핸들러

학습 가이드를 낭독 스크립트로 바꾸고, 청크별로 음성을 합성한 뒤 하나의 파일로
합쳐 게시합니다. 같은 (학습 가이드, voice, speed) 조합이 이미 게시되어 있으면
합성 없이 기존 결과를 돌려줍니다.

진행률: 5 -> 10 -> 20 -> (청크별 20~80) -> 90 -> 100
"""

import asyncio
import logging
import math
from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, Field

from store.model import Priority
from worker.base import BaseHandler
from worker.exception import JobCancelledError
from worker.job.podcast_script import format_for_podcast, split_into_chunks
from worker.model.handler import ProgressReporter

logger = logging.getLogger(__name__)

_PRIORITY = {"high": Priority.HIGH, "normal": Priority.NORMAL, "low": Priority.LOW}


class PodcastJobData(BaseModel):
    """팟캐스트 생성 입력"""
    study_guide_id: str
    user_id: str
    study_guide_title: str
    study_guide_content: str = Field(min_length=1)
    voice: str = "alloy"
    speed: float = Field(default=1.0, ge=0.25, le=4.0)
    spelling: Literal["UK", "US"] = "UK"
    priority: Literal["low", "normal", "high"] = "normal"


class PodcastJobResult(BaseModel):
    """팟캐스트 생성 결과"""
    podcast_id: str
    audio_url: str
    chunks: int = 0
    reused: bool = False


class PodcastBackend(Protocol):
    """음성 합성 및 게시 백엔드"""

    async def find_existing(self, data: PodcastJobData) -> PodcastJobResult | None:
        ...

    async def synthesize(self, text: str, voice: str, speed: float) -> bytes:
        ...

    async def publish(self, data: PodcastJobData, audio: bytes, script: str, chunks: int) -> PodcastJobResult:
        ...


class TranscriptPodcastBackend:
    """
    스크립트 파일 백엔드

    음성 합성 대신 낭독 스크립트를 output_dir에 저장한다. 실제 TTS 백엔드를 붙이기
    전 개발/테스트 환경용.
    """

    def __init__(self, output_dir: str | Path = "./data/podcasts"):
        self._output_dir = Path(output_dir)

    def _path(self, data: PodcastJobData) -> Path:
        name = f"study-guide-{data.study_guide_id}-{data.voice}-{data.speed}x.txt"
        return self._output_dir / data.user_id / name

    async def find_existing(self, data: PodcastJobData) -> PodcastJobResult | None:
        path = self._path(data)
        if not await asyncio.to_thread(path.exists):
            return None
        return PodcastJobResult(podcast_id=path.stem, audio_url=path.resolve().as_uri(), reused=True)

    async def synthesize(self, text: str, voice: str, speed: float) -> bytes:
        return (text + "\n").encode("utf-8")

    async def publish(self, data: PodcastJobData, audio: bytes, script: str, chunks: int) -> PodcastJobResult:
        path = self._path(data)

        def write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(audio)

        await asyncio.to_thread(write)
        return PodcastJobResult(podcast_id=path.stem, audio_url=path.resolve().as_uri(), chunks=chunks)


class PodcastGenerateHandler(BaseHandler):
    """팟캐스트 생성 핸들러"""

    payload_model = PodcastJobData

    def __init__(self, backend: PodcastBackend):
        self._backend = backend

    def priority_for(self, payload: PodcastJobData) -> int:
        return _PRIORITY[payload.priority]

    async def execute(
        self,
        payload: PodcastJobData,
        progress: ProgressReporter,
        cancel_event: asyncio.Event,
    ) -> PodcastJobResult:
        logger.info(f"Generating podcast: study_guide={payload.study_guide_id}, voice={payload.voice}")
        await progress(5)

        existing = await self._backend.find_existing(payload)
        if existing is not None:
            logger.info(f"Using existing podcast for study guide {payload.study_guide_id}")
            await progress(100)
            return existing
        await progress(10)

        script = format_for_podcast(
            payload.study_guide_content, payload.study_guide_title, payload.spelling
        )
        chunks = split_into_chunks(script)
        logger.info(f"Split podcast script into {len(chunks)} chunks")
        await progress(20)

        audio_parts = []
        for index, chunk in enumerate(chunks, start=1):
            if cancel_event.is_set():
                raise JobCancelledError()
            audio_parts.append(await self._backend.synthesize(chunk, payload.voice, payload.speed))
            await progress(min(80, 20 + math.floor(index * 60 / len(chunks))))

        audio = b"".join(audio_parts)
        await progress(90)

        result = await self._backend.publish(payload, audio, script, len(chunks))
        await progress(100)
        logger.info(f"Podcast published: id={result.podcast_id}, bytes={len(audio)}")
        return result


def create_handler() -> PodcastGenerateHandler:
    """기본 핸들러 (스크립트 파일 백엔드)"""
    return PodcastGenerateHandler(TranscriptPodcastBackend())
