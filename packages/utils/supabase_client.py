"""
Supabase REST API client for document processing.

Uses the Supabase Python SDK (HTTPS). The document store is driven entirely
through RPC functions so that chunk writes stay inside a server-side
processing transaction:

    begin_document_processing -> add_document_chunk* -> commit | rollback

Similarity search goes through the ``match_documents`` RPC, which applies
ownership and department filtering in PostgreSQL.
"""

import logging
from typing import Any, Dict, List, Optional

from supabase import Client, create_client

from packages.config import SupabaseConfig, settings

logger = logging.getLogger(__name__)


class SupabaseRestClient:
    """
    REST API client for Supabase using the official Python SDK.
    """

    def __init__(self, config: Optional[SupabaseConfig] = None, client: Optional[Client] = None):
        """
        Initialize Supabase client.

        Args:
            config: Connection settings (``settings.supabase`` if omitted)
            client: Preconfigured supabase Client (skips create_client)

        Raises:
            ValueError: If URL or service key are missing
        """
        if client is not None:
            self.client = client
            return

        config = config or settings.supabase
        if not config.url:
            raise ValueError("SUPABASE_URL environment variable not set")
        if not config.service_key:
            raise ValueError("SUPABASE_SERVICE_KEY environment variable not set")

        self.client: Client = create_client(config.url, config.service_key)
        logger.info("Supabase REST client initialized")

    def _rpc(self, function_name: str, params: Dict[str, Any]) -> Any:
        try:
            response = self.client.rpc(function_name, params).execute()
        except Exception as e:
            logger.error(f"Error executing RPC {function_name}: {e}")
            raise
        return response.data

    async def begin_document_processing(
        self,
        title: str,
        content: str,
        metadata: Dict[str, Any],
        user_id: str,
        team_id: Optional[str],
        is_private: bool,
        department: Optional[str],
    ) -> Dict[str, Any]:
        """
        Open a processing transaction and create the pending document row.

        Returns:
            The pending document (at least ``id`` and ``metadata``)
        """
        document = self._rpc(
            "begin_document_processing",
            {
                "p_title": title,
                "p_content": content,
                "p_metadata": metadata,
                "p_user_id": user_id,
                "p_team_id": team_id,
                "p_is_private": is_private,
                "p_department": department,
            },
        )
        if isinstance(document, list):
            document = document[0] if document else None
        if not document:
            raise RuntimeError("Failed to create document")

        logger.debug(f"Began processing document: {title} ({document['id']})")
        return document

    async def add_document_chunk(
        self,
        document_id: str,
        content: str,
        embedding: List[float],
        metadata: Dict[str, Any],
        user_id: str,
        team_id: Optional[str],
        department: Optional[str],
    ) -> Dict[str, Any]:
        """Write one chunk inside the document's processing transaction."""
        chunk = self._rpc(
            "add_document_chunk",
            {
                "p_document_id": document_id,
                "p_content": content,
                "p_embedding": embedding,
                "p_metadata": metadata,
                "p_user_id": user_id,
                "p_team_id": team_id,
                "p_department": department,
            },
        )
        if isinstance(chunk, list):
            chunk = chunk[0] if chunk else {}
        return chunk or {}

    async def commit_document_processing(self, document_id: str) -> None:
        self._rpc("commit_document_processing", {"p_document_id": document_id})
        logger.debug(f"Committed document {document_id}")

    async def rollback_document_processing(self, document_id: str) -> None:
        self._rpc("rollback_document_processing", {"p_document_id": document_id})
        logger.debug(f"Rolled back document {document_id}")

    async def match_documents(
        self,
        query_embedding: List[float],
        match_threshold: float,
        match_count: int,
        user_id: str,
        department: Optional[str],
    ) -> List[Dict[str, Any]]:
        """
        Vector similarity search via the ``match_documents`` RPC.

        Args:
            query_embedding: Query vector
            match_threshold: Minimum similarity score (0-1)
            match_count: Maximum number of results
            user_id: Caller, used for ownership/privacy filtering
            department: Caller's department

        Returns:
            Matching chunks with similarity scores
        """
        matches = self._rpc(
            "match_documents",
            {
                "query_embedding": query_embedding,
                "match_threshold": match_threshold,
                "match_count": match_count,
                "current_user_id": user_id,
                "user_department": department,
            },
        )
        logger.debug(f"match_documents: {len(matches or [])} results above {match_threshold}")
        return matches or []

    async def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch ``is_active`` and ``department`` for a user.

        Returns:
            The profile row, or None if the user does not exist
        """
        try:
            response = (
                self.client.table("users")
                .select("is_active, department")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error fetching user {user_id}: {e}")
            raise

        return response.data[0] if response.data else None
