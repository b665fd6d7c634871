"""FastAPI REST API wrapper for the Archivist engine."""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field

from .archivist import Archivist, create_archivist
from .exceptions import ExtractionError
from .models import Document, ProcessingStatus


# ============ Request/Response Models ============

class TextImportRequest(BaseModel):
    """Request body for a typed-in note."""
    title: str = Field(..., min_length=1, description="Document title")
    text: str = Field(..., min_length=1, description="Note content")


class DocumentInfo(BaseModel):
    """Document metadata and processing state."""
    id: str
    title: str
    file_type: str
    source_type: str
    status: str
    finished: bool = Field(..., description="True once the status is ready or error")
    error_message: Optional[str] = None
    file_size: Optional[int] = None
    created_at: str

    @classmethod
    def from_document(cls, document: Document) -> "DocumentInfo":
        return cls(
            id=document.id,
            title=document.title,
            file_type=document.file_type.value,
            source_type=document.source_type.value,
            status=document.status.value,
            finished=document.status.is_terminal,
            error_message=document.error_message,
            file_size=document.file_size,
            created_at=document.created_at,
        )


class DocumentDetail(DocumentInfo):
    """Document with its extracted text."""
    content: str


class ChunkItem(BaseModel):
    """A stored chunk."""
    id: str
    chunk_index: int
    start_offset: int
    end_offset: int
    content: str


class SearchRequest(BaseModel):
    """Request body for search."""
    query: str = Field(..., description="Search query")
    limit: int = Field(default=5, ge=1, le=100, description="Number of results")
    min_score: Optional[float] = Field(
        default=None, ge=0.0,
        description="Minimum fused score (engine default if omitted)"
    )


class SearchResultItem(BaseModel):
    """Single search result."""
    chunk_id: str
    document_id: str
    document_title: str
    chunk_index: int
    content: str
    score: float


class SearchResponse(BaseModel):
    """Response from search."""
    results: List[SearchResultItem]
    query: str
    count: int


class StatsResponse(BaseModel):
    """Engine statistics."""
    documents: int
    documents_by_status: Dict[str, int]
    chunks: int
    vectors: int
    db_path: str
    files_dir: str
    embedding_model: str
    embedding_dim: int
    cache_stats: Dict[str, Any]


# ============ App Factory ============

def create_app(archivist: Optional[Archivist] = None, **kwargs) -> FastAPI:
    """
    Create a FastAPI app wrapping an Archivist instance.
    
    Args:
        archivist: Engine to serve; created with ``create_archivist`` if omitted
        **kwargs: Arguments for create_archivist
    
    Returns:
        FastAPI app instance
    """
    
    archivist_instance: Optional[Archivist] = archivist
    
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal archivist_instance
        owned = archivist_instance is None
        if owned:
            archivist_instance = create_archivist(**kwargs)
        yield
        if owned and archivist_instance:
            archivist_instance.close()
            archivist_instance = None
    
    app = FastAPI(
        title="Archivist API",
        description="Document ingestion with hybrid semantic and keyword search",
        version="1.0.0",
        lifespan=lifespan,
    )
    
    def get_archivist() -> Archivist:
        if archivist_instance is None:
            raise HTTPException(status_code=503, detail="Archivist not initialized")
        return archivist_instance
    
    def get_document_or_404(document_id: str) -> Document:
        document = get_archivist().get_document(document_id)
        if document is None:
            raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
        return document
    
    # ============ Endpoints ============
    
    @app.post("/documents", response_model=DocumentInfo, status_code=202, tags=["Documents"])
    async def upload_document(
        background_tasks: BackgroundTasks,
        file: UploadFile = File(..., description="Document to import"),
        title: Optional[str] = Form(default=None),
        file_type: Optional[str] = Form(default=None),
    ):
        """
        Upload a document.
        
        The file is stored right away; extraction, chunking and embedding
        run in the background. Poll `GET /documents/{id}` for the status.
        """
        archivist = get_archivist()
        data = await file.read()
        try:
            document = archivist.import_bytes(
                data, file.filename or "upload", title=title, file_type=file_type
            )
        except ExtractionError as e:
            raise HTTPException(status_code=400, detail=str(e))
        background_tasks.add_task(archivist.process, document.id)
        return DocumentInfo.from_document(document)
    
    @app.post("/documents/text", response_model=DocumentInfo, status_code=202, tags=["Documents"])
    async def import_text(request: TextImportRequest, background_tasks: BackgroundTasks):
        """Create a document from typed-in text and process it in the background."""
        archivist = get_archivist()
        document = archivist.import_text(request.title, request.text)
        background_tasks.add_task(archivist.process, document.id)
        return DocumentInfo.from_document(document)
    
    @app.get("/documents", response_model=List[DocumentInfo], tags=["Documents"])
    async def list_documents(
        status: Optional[ProcessingStatus] = Query(default=None, description="Filter by status"),
    ):
        """List documents, newest first."""
        documents = get_archivist().list_documents(status)
        return [DocumentInfo.from_document(d) for d in documents]
    
    @app.get("/documents/{document_id}", response_model=DocumentDetail, tags=["Documents"])
    async def get_document(document_id: str):
        """Get a document with its extracted text."""
        document = get_document_or_404(document_id)
        return DocumentDetail(
            **DocumentInfo.from_document(document).model_dump(),
            content=document.content,
        )
    
    @app.get("/documents/{document_id}/chunks", response_model=List[ChunkItem], tags=["Documents"])
    async def get_chunks(document_id: str):
        """Get a document's chunks in reading order."""
        get_document_or_404(document_id)
        return [
            ChunkItem(
                id=c.id,
                chunk_index=c.chunk_index,
                start_offset=c.start_offset,
                end_offset=c.end_offset,
                content=c.content,
            )
            for c in get_archivist().get_chunks(document_id)
        ]
    
    @app.post(
        "/documents/{document_id}/reprocess",
        response_model=DocumentInfo,
        status_code=202,
        tags=["Documents"],
    )
    async def reprocess_document(document_id: str, background_tasks: BackgroundTasks):
        """Run the ingestion pipeline again for a document."""
        document = get_document_or_404(document_id)
        background_tasks.add_task(get_archivist().reprocess, document_id)
        return DocumentInfo.from_document(document)
    
    @app.delete("/documents/{document_id}", tags=["Documents"])
    async def delete_document(document_id: str):
        """Delete a document with its chunks, vectors and stored file."""
        if not get_archivist().delete_document(document_id):
            raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
        return {"deleted": True, "document_id": document_id}
    
    @app.post("/search", response_model=SearchResponse, tags=["Search"])
    def search(request: SearchRequest):
        """
        Hybrid search over ready documents.
        
        Semantic similarity is fused with literal term coverage; chunks
        with neither term support nor a strong semantic match are dropped.
        """
        results = get_archivist().search(
            request.query,
            limit=request.limit,
            min_score=request.min_score,
        )
        return SearchResponse(
            results=[
                SearchResultItem(
                    chunk_id=r.chunk_id,
                    document_id=r.document_id,
                    document_title=r.document_title,
                    chunk_index=r.chunk_index,
                    content=r.content,
                    score=r.score,
                )
                for r in results
            ],
            query=request.query,
            count=len(results),
        )
    
    @app.get("/stats", response_model=StatsResponse, tags=["Management"])
    async def get_stats():
        """Get engine statistics including cache info."""
        stats = get_archivist().get_stats()
        stats["cache_stats"] = stats.pop("cache")
        return StatsResponse(**stats)
    
    @app.post("/cache/clear", tags=["Cache"])
    async def clear_cache():
        """Clear the embedding cache."""
        cache = get_archivist().embedder.cache
        stats_before = cache.stats()
        cache.clear()
        return {"cleared": True, "entries_cleared": stats_before["size"]}
    
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "archivist"}
    
    return app


# Default app for `uvicorn archivist.api:app`
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
