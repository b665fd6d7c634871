"""Hybrid search: vector similarity fused with FTS5 relevance."""

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .config import FusionWeights
from .lexicon import build_fts_query, entity_terms, meaningful_terms, token_set
from .models import SearchResult
from .storage import MetadataStore
from .vectors import VectorLike, cosine_similarity, vector_from_bytes

logger = logging.getLogger(__name__)


class HybridSearchEngine:
    """Handles semantic, keyword, and hybrid search over ready documents."""
    
    def __init__(self, store: MetadataStore, weights: Optional[FusionWeights] = None):
        self.store = store
        self.weights = weights or FusionWeights()
    
    def semantic_search(
        self,
        query_vector: VectorLike,
        k: int = 10,
        floor: Optional[float] = None,
    ) -> List[Tuple[Dict[str, Any], float]]:
        """
        Exact cosine scan over every stored vector of a ready document.

        Returns ``(candidate, similarity)`` pairs at or above ``floor``,
        best first, at most ``k``.
        """
        if k <= 0:
            return []
        floor = self.weights.semantic_floor if floor is None else floor
        query = np.asarray(query_vector, dtype=np.float32)
        
        scored = []
        for row in self.store.ready_vectors():
            similarity = cosine_similarity(query, vector_from_bytes(row.pop("embedding")))
            if similarity >= floor:
                scored.append((row, similarity))
        
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:k]
    
    def keyword_search(self, query_text: str, k: int = 10) -> List[Dict[str, Any]]:
        """
        FTS5 search requiring every meaningful query term.

        Falls back to any term when the strict query finds nothing and the
        query has more than one term.
        """
        terms = meaningful_terms(query_text)
        if not terms or k <= 0:
            return []
        
        rows = self.store.search_fts(build_fts_query(terms), k)
        if not rows and len(terms) > 1:
            logger.debug(f"No chunk matches all of {terms}, relaxing to any term")
            rows = self.store.search_fts(build_fts_query(terms, use_or=True), k)
        return rows
    
    def hybrid_search(
        self,
        query_vector: VectorLike,
        query_text: str,
        limit: int = 5,
        min_score: Optional[float] = None,
    ) -> List[SearchResult]:
        """
        Rank chunks by fusing semantic similarity with literal term support.
        
        Args:
            query_vector: Embedding of the query
            query_text: The raw query, used for term matching
            limit: Maximum number of results
            min_score: Minimum fused score (defaults to ``weights.default_min_score``)
        
        Returns:
            Results sorted by descending fused score
        """
        if limit <= 0:
            return []
        w = self.weights
        min_score = w.default_min_score if min_score is None else min_score
        candidate_k = limit * w.candidate_multiplier
        
        semantic = self.semantic_search(query_vector, candidate_k)
        keyword = self.keyword_search(query_text, candidate_k)
        logger.debug(
            f"Hybrid candidates for {query_text!r}: "
            f"{len(semantic)} semantic, {len(keyword)} keyword"
        )
        
        candidates: Dict[str, Dict[str, Any]] = {}
        semantic_scores: Dict[str, float] = {}
        for row, similarity in semantic:
            candidates[row["chunk_id"]] = row
            semantic_scores[row["chunk_id"]] = similarity
        keyword_ids = set()
        for row in keyword:
            candidates.setdefault(row["chunk_id"], row)
            keyword_ids.add(row["chunk_id"])
        
        terms = meaningful_terms(query_text)
        entities = entity_terms(terms)
        
        results = []
        for chunk_id, row in candidates.items():
            semantic_score = semantic_scores.get(chunk_id, 0.0)
            tokens = token_set(row["content"], row["document_title"])
            matched = sum(1 for term in terms if term in tokens)
            coverage = matched / len(terms) if terms else 0.0
            has_overlap = matched > 0
            has_entity = any(term in tokens for term in entities)
            
            if terms and not has_overlap and not has_entity and semantic_score < w.semantic_only_bar:
                continue
            
            bonus = 0.0
            if chunk_id in keyword_ids and has_overlap:
                bonus += w.keyword_bonus_base + w.keyword_bonus_coverage * coverage
            elif has_overlap:
                bonus += w.lexical_bonus_coverage * coverage
            if has_entity:
                bonus += w.entity_bonus
            
            score = w.semantic_weight * semantic_score + w.coverage_weight * coverage + bonus
            if score < min_score:
                continue
            
            results.append(SearchResult(
                chunk_id=chunk_id,
                content=row["content"],
                document_id=row["document_id"],
                document_title=row["document_title"],
                chunk_index=row["chunk_index"],
                score=score,
            ))
        
        results.sort(key=lambda r: r.score, reverse=True)
        results = results[:limit]
        if results:
            logger.debug(
                "Top fused scores: "
                + ", ".join(f"{r.document_title}#{r.chunk_index}={r.score:.3f}" for r in results)
            )
        return results
