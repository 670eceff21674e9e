"""
Process-wide pipeline wiring.

Builds the collaborators selected in Settings once and hands the same
RequestPipeline to every request.  Tests replace ``get_pipeline`` through
``app.dependency_overrides``.
"""

from __future__ import annotations

from ca_assistant.core.config import Settings, get_settings
from ca_assistant.pipeline.orchestrator import RequestPipeline
from ca_assistant.services.base import GenerationBackend, VectorIndex
from ca_assistant.utils.logging import get_logger

logger = get_logger("ca_assistant.api.dependencies")

_pipeline: RequestPipeline | None = None


def _workers_client(settings: Settings):
    from ca_assistant.services.workers_ai import WorkersAIClient

    return WorkersAIClient(
        settings.cloudflare_account_id or "",
        settings.cloudflare_api_token or "",
        base_url=settings.cloudflare_base_url,
    )


def build_backend(settings: Settings, workers_client=None) -> GenerationBackend:
    if settings.generation_provider == "workers_ai":
        from ca_assistant.services.workers_ai import WorkersAIBackend

        return WorkersAIBackend(workers_client or _workers_client(settings))
    if settings.generation_provider == "openai":
        from ca_assistant.services.openai_backend import OpenAIBackend

        return OpenAIBackend.from_credentials(settings.openai_api_key, settings.openai_base_url)
    raise ValueError(f"Unknown generation provider: {settings.generation_provider!r}")


def build_index(settings: Settings, workers_client=None) -> VectorIndex:
    if settings.vector_provider == "vectorize":
        from ca_assistant.services.vectorize import VectorizeIndex

        return VectorizeIndex(
            workers_client or _workers_client(settings),
            settings.vectorize_index_name,
            settings.embedding_model,
        )
    if settings.vector_provider == "chroma":
        from ca_assistant.services.chroma_index import ChromaVectorIndex

        return ChromaVectorIndex.open(settings.chromadb_persist_directory, settings.chroma_collection)
    if settings.vector_provider == "none":
        from ca_assistant.services.null_index import NullVectorIndex

        return NullVectorIndex()
    raise ValueError(f"Unknown vector provider: {settings.vector_provider!r}")


def build_pipeline(settings: Settings) -> RequestPipeline:
    workers_client = None
    if settings.generation_provider == "workers_ai" or settings.vector_provider == "vectorize":
        workers_client = _workers_client(settings)

    pipeline = RequestPipeline(
        settings,
        index=build_index(settings, workers_client),
        backend=build_backend(settings, workers_client),
    )
    logger.info(
        "Pipeline ready | generation=%s vector=%s",
        settings.generation_provider, settings.vector_provider,
    )
    return pipeline


def get_pipeline() -> RequestPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline(get_settings())
    return _pipeline


async def close_pipeline() -> None:
    global _pipeline
    if _pipeline is not None:
        await _pipeline.aclose()
        _pipeline = None
