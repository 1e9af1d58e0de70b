"""Firestoreクライアント"""
import os
from collections.abc import Iterator
from typing import Any, Optional

from google.cloud import firestore

from ....shared.exceptions.errors import StorageError
from ....shared.logging.config import get_logger

logger = get_logger(__name__)


class FirestoreClient:
    """Firestore操作クライアント"""

    def __init__(
        self, project_id: Optional[str] = None, database_id: str = "(default)"
    ) -> None:
        """
        Firestoreクライアントを初期化

        Args:
            project_id: GCPプロジェクトID（Noneの場合は実行環境の既定値）
            database_id: データベースID（デフォルトは"(default)"）

        Raises:
            StorageError: 初期化に失敗した場合（認証情報がない等）
        """
        self.project_id = project_id
        self.database_id = database_id

        # エミュレータモードの検出
        emulator_host = os.environ.get("FIRESTORE_EMULATOR_HOST")

        try:
            self.client = firestore.Client(project=project_id, database=database_id)

            if emulator_host:
                logger.info(
                    f"Firestore client initialized (EMULATOR MODE): "
                    f"host={emulator_host}, project={self.client.project}, database={database_id}"
                )
            else:
                logger.info(
                    f"Firestore client initialized: project={self.client.project}, database={database_id}"
                )
        except Exception as e:
            raise StorageError(f"Failed to initialize Firestore client: {e}") from e

    def get_collection(self, collection_path: str) -> firestore.CollectionReference:
        """
        コレクション参照を取得

        Args:
            collection_path: コレクションパス

        Returns:
            CollectionReference: コレクション参照
        """
        return self.client.collection(collection_path)

    def add_document(self, collection_path: str, data: dict[str, Any]) -> str:
        """
        自動採番IDでドキュメントを追加

        Args:
            collection_path: コレクションパス
            data: ドキュメントデータ

        Returns:
            str: 採番されたドキュメントID

        Raises:
            StorageError: 書き込みに失敗した場合
        """
        try:
            _, doc_ref = self.get_collection(collection_path).add(data)
            return doc_ref.id

        except Exception as e:
            raise StorageError(f"Failed to add document to {collection_path}: {e}") from e

    def query_documents(
        self,
        collection_path: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict[str, Any]]]:
        """
        並び替え・件数指定でドキュメントを取得

        Args:
            collection_path: コレクションパス
            order_by: 並び替えに使うフィールド名
            descending: 降順にするか
            limit: 取得件数の上限

        Returns:
            list[tuple[str, dict[str, Any]]]: (ドキュメントID, データ) のリスト

        Example:
            >>> client.query_documents(
            ...     "contributions", order_by="createdAt", descending=True, limit=100
            ... )
        """
        try:
            query = self.get_collection(collection_path)

            if order_by:
                direction = (
                    firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
                )
                query = query.order_by(order_by, direction=direction)

            if limit:
                query = query.limit(limit)

            return [(doc.id, doc.to_dict()) for doc in query.stream() if doc.exists]

        except Exception as e:
            raise StorageError(
                f"Failed to query documents from {collection_path}: {e}"
            ) from e

    def stream_documents(self, collection_path: str) -> Iterator[tuple[str, dict[str, Any]]]:
        """
        コレクションの全ドキュメントを順に取得（バッチジョブ用）

        Args:
            collection_path: コレクションパス

        Yields:
            tuple[str, dict[str, Any]]: (ドキュメントID, データ)
        """
        try:
            for doc in self.get_collection(collection_path).stream():
                if doc.exists:
                    yield doc.id, doc.to_dict()

        except Exception as e:
            raise StorageError(
                f"Failed to stream documents from {collection_path}: {e}"
            ) from e

    def update_document(
        self, collection_path: str, document_id: str, updates: dict[str, Any]
    ) -> None:
        """
        ドキュメントを更新

        Args:
            collection_path: コレクションパス
            document_id: ドキュメントID
            updates: 更新内容
        """
        try:
            doc_ref = self.get_collection(collection_path).document(document_id)
            doc_ref.update(updates)
            logger.info(
                f"Document {document_id} updated in {collection_path}: {sorted(updates)}"
            )

        except Exception as e:
            raise StorageError(
                f"Failed to update document {document_id} in {collection_path}: {e}"
            ) from e
