"""投稿リポジトリ"""
from collections.abc import Iterator
from typing import Any

from ....shared.exceptions.errors import StorageError
from ....shared.logging.config import get_logger
from ..clients.firestore_client import FirestoreClient

logger = get_logger(__name__)

ID_FIELD = "_id"


class ContributionRepository:
    """植樹投稿データのリポジトリ"""

    COLLECTION_NAME = "contributions"

    def __init__(
        self, firestore_client: FirestoreClient, collection_name: str = COLLECTION_NAME
    ) -> None:
        """
        ContributionRepositoryを初期化

        Args:
            firestore_client: Firestoreクライアント
            collection_name: コレクション名
        """
        self.client = firestore_client
        self.collection_name = collection_name
        logger.info(f"ContributionRepository initialized: {collection_name}")

    def insert(self, contribution: dict[str, Any]) -> str:
        """
        投稿を新規作成

        Args:
            contribution: 投稿ドキュメント

        Returns:
            str: 採番された投稿ID

        Raises:
            StorageError: 保存に失敗した場合
        """
        document_id = self.client.add_document(self.collection_name, contribution)
        logger.info(f"Contribution created: {document_id}")
        return document_id

    def find_recent(self, limit: int) -> list[dict[str, Any]]:
        """
        作成日時の新しい順に投稿を取得

        Args:
            limit: 取得件数の上限

        Returns:
            list[dict[str, Any]]: 投稿のリスト（各要素に _id を付与）
        """
        try:
            docs = self.client.query_documents(
                self.collection_name, order_by="createdAt", descending=True, limit=limit
            )
            return [{ID_FIELD: doc_id, **data} for doc_id, data in docs]

        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get recent contributions: {e}") from e

    def iter_all(self) -> Iterator[tuple[str, dict[str, Any]]]:
        """全投稿を (ID, データ) として順に取得"""
        return self.client.stream_documents(self.collection_name)

    def update(self, contribution_id: str, updates: dict[str, Any]) -> None:
        """
        投稿の一部フィールドを更新

        Args:
            contribution_id: 投稿ID
            updates: 更新内容
        """
        self.client.update_document(self.collection_name, contribution_id, updates)
