import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, delete, func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import aliased

from core.exceptions import ValidationError
from core.utils import cosine_similarity_from_distance
from database.models import (
    Embedding, EmbeddingChunk, EmbeddingType, Application, EMBEDDING_OWNER_INDEX_ELEMENTS
)
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class EmbeddingRepository(BaseRepository):
    def store_embedding(
        self,
        embedding_type: EmbeddingType,
        vector: List[float],
        model: str,
        dimensions: int,
        original_text: Optional[str] = None,
        application_id: Optional[int] = None,
        job_posting_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Embedding:
        """Insert or replace the embedding for (type, application, job posting).

        Raises:
            ValidationError: unless exactly one owner id is given
        """
        if (application_id is None) == (job_posting_id is None):
            raise ValidationError("Exactly one of application_id or job_posting_id must be set")

        type_value = EmbeddingType(embedding_type).value
        stmt = insert(Embedding).values(
            embedding_type=type_value,
            application_id=application_id,
            job_posting_id=job_posting_id,
            embedding=vector,
            model=model,
            dimensions=dimensions,
            original_text=original_text,
            embedding_metadata=metadata or {},
        ).on_conflict_do_update(
            index_elements=EMBEDDING_OWNER_INDEX_ELEMENTS,
            set_={
                'embedding': vector,
                'model': model,
                'dimensions': dimensions,
                'original_text': original_text,
                'embedding_metadata': metadata or {},
                'updated_at': func.timezone('UTC', func.now()),
            }
        ).returning(Embedding.embedding_id)

        embedding_id = self.db.execute(stmt).scalar_one()
        logger.debug(
            f"Stored {type_value} embedding {embedding_id} "
            f"(application={application_id}, job_posting={job_posting_id})"
        )
        return self.db.execute(
            select(Embedding)
            .where(Embedding.embedding_id == embedding_id)
            .execution_options(populate_existing=True)
        ).scalar_one()

    def get_embedding(
        self,
        embedding_type: EmbeddingType,
        application_id: Optional[int] = None,
        job_posting_id: Optional[int] = None,
    ) -> Optional[Embedding]:
        stmt = select(Embedding).where(Embedding.embedding_type == EmbeddingType(embedding_type).value)
        if application_id is not None:
            stmt = stmt.where(Embedding.application_id == application_id)
        else:
            stmt = stmt.where(Embedding.application_id.is_(None))
        if job_posting_id is not None:
            stmt = stmt.where(Embedding.job_posting_id == job_posting_id)
        else:
            stmt = stmt.where(Embedding.job_posting_id.is_(None))
        return self.db.execute(stmt).scalar_one_or_none()

    def delete_application_embeddings(self, application_id: int) -> None:
        """Remove every chunk and document embedding of an application."""
        self.db.execute(delete(EmbeddingChunk).where(EmbeddingChunk.application_id == application_id))
        self.db.execute(delete(Embedding).where(Embedding.application_id == application_id))

    def replace_chunks(
        self,
        application_id: int,
        chunks: Sequence[Any],
        vectors: Sequence[List[float]],
        model: str,
    ) -> List[EmbeddingChunk]:
        """Delete all chunks of the application and insert the new set.

        Args:
            application_id: Owner
            chunks: TextChunk-like objects (text, start_position, end_position, chunk_index)
            vectors: One vector per chunk
            model: Embedding model name
        """
        if len(chunks) != len(vectors):
            raise ValidationError(f"Got {len(vectors)} vectors for {len(chunks)} chunks")

        self.db.execute(delete(EmbeddingChunk).where(EmbeddingChunk.application_id == application_id))

        records = []
        for chunk, vector in zip(chunks, vectors):
            record = EmbeddingChunk(
                application_id=application_id,
                chunk_index=chunk.chunk_index,
                chunk_text=chunk.text,
                start_position=chunk.start_position,
                end_position=chunk.end_position,
                embedding=vector,
                model=model,
            )
            self.db.add(record)
            records.append(record)

        self.db.flush()
        return records

    def get_chunks(self, application_id: int) -> List[EmbeddingChunk]:
        stmt = (
            select(EmbeddingChunk)
            .where(EmbeddingChunk.application_id == application_id)
            .order_by(EmbeddingChunk.chunk_index)
        )
        return list(self.db.execute(stmt).scalars().all())

    def vector_similarity(self, application_id: int, job_posting_id: int) -> Optional[float]:
        """Cosine similarity between the CV full-text and job description embeddings."""
        cv = aliased(Embedding)
        job = aliased(Embedding)
        stmt = (
            select(cv.embedding.cosine_distance(job.embedding).label('distance'))
            .select_from(cv)
            .join(job, job.embedding_type == EmbeddingType.JOB_DESCRIPTION.value)
            .where(
                cv.embedding_type == EmbeddingType.CV_FULL_TEXT.value,
                cv.application_id == application_id,
                job.job_posting_id == job_posting_id,
            )
        )
        distance = self.db.execute(stmt).scalar_one_or_none()
        if distance is None:
            return None
        return cosine_similarity_from_distance(distance)

    def find_top_chunks(
        self,
        application_id: int,
        query_embedding: List[float],
        top_k: int = 3,
    ) -> List[Tuple[EmbeddingChunk, float]]:
        distance = EmbeddingChunk.embedding.cosine_distance(query_embedding).label('distance')
        stmt = (
            select(EmbeddingChunk, distance)
            .where(EmbeddingChunk.application_id == application_id)
            .order_by(distance)
            .limit(top_k)
        )
        results = self.db.execute(stmt).all()
        return [(row[0], cosine_similarity_from_distance(row._mapping['distance'])) for row in results]

    def find_similar_chunks(
        self,
        query_embedding: List[float],
        job_posting_id: Optional[int] = None,
        limit: int = 10,
        threshold: float = 0.7,
    ) -> List[Tuple[EmbeddingChunk, float]]:
        """Best matching CV excerpts, optionally restricted to one posting's applicants."""
        distance = EmbeddingChunk.embedding.cosine_distance(query_embedding).label('distance')
        stmt = select(EmbeddingChunk, distance)
        if job_posting_id is not None:
            stmt = stmt.join(
                Application, Application.application_id == EmbeddingChunk.application_id
            ).where(Application.job_posting_id == job_posting_id)
        stmt = stmt.where(distance <= 1.0 - threshold).order_by(distance).limit(limit)

        results = self.db.execute(stmt).all()
        return [(row[0], cosine_similarity_from_distance(row._mapping['distance'])) for row in results]

    def find_similar(
        self,
        query_embedding: List[float],
        embedding_type: EmbeddingType,
        threshold: float = 0.7,
        limit: int = 10,
    ) -> List[Tuple[Embedding, float]]:
        """Nearest document embeddings of one type above a similarity threshold."""
        distance = Embedding.embedding.cosine_distance(query_embedding).label('distance')
        stmt = (
            select(Embedding, distance)
            .where(
                Embedding.embedding_type == EmbeddingType(embedding_type).value,
                distance <= 1.0 - threshold,
            )
            .order_by(distance)
            .limit(limit)
        )
        results = self.db.execute(stmt).all()
        return [(row[0], cosine_similarity_from_distance(row._mapping['distance'])) for row in results]

    def find_similar_cvs(self, job_posting_id: int, threshold: float = 0.7, limit: int = 10) -> List[Tuple[Embedding, float]]:
        """CV full-text embeddings closest to a job posting's description."""
        job = self.get_embedding(EmbeddingType.JOB_DESCRIPTION, job_posting_id=job_posting_id)
        if job is None:
            return []
        return self.find_similar(list(job.embedding), EmbeddingType.CV_FULL_TEXT, threshold=threshold, limit=limit)

    def find_similar_jobs(self, application_id: int, threshold: float = 0.7, limit: int = 10) -> List[Tuple[Embedding, float]]:
        """Job description embeddings closest to an application's CV."""
        cv = self.get_embedding(EmbeddingType.CV_FULL_TEXT, application_id=application_id)
        if cv is None:
            return []
        return self.find_similar(list(cv.embedding), EmbeddingType.JOB_DESCRIPTION, threshold=threshold, limit=limit)
