"""기본 잡 핸들러"""

from store.model import JobType

# 잡 타입 -> "module:factory" (queue.yaml의 handlers로 덮어쓸 수 있음)
DEFAULT_HANDLERS = {
    JobType.DOCUMENT_INGEST.value: "worker.job.document:create_handler",
    JobType.PODCAST_GENERATE.value: "worker.job.podcast:create_handler",
}
