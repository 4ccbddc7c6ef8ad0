"""Remote card repository - per-user card collection in the document store.

Cards live at ``users/{userId}/cards/{cardId}`` where ``cardId`` is the
local card's UUID in string form, so identity is the join key between the
two sides.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from ..auth import IdentityProvider
from ..errors import DecodeFailure, NotAuthenticated
from ..imaging.codec import decode_image_from_document, encode_image_for_document
from ..models.card import Card
from ..remote.firestore import DocumentStore
from .field_mapper import local_card_to_remote, remote_card_to_local

logger = logging.getLogger(__name__)


def cards_collection_path(user_id: str) -> str:
    return f"users/{user_id}/cards"


class RemoteCardRepository:
    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider,
        max_image_bytes: int | None = None,
    ):
        self.store = store
        self.identity = identity
        self.max_image_bytes = max_image_bytes

    def _collection(self) -> str:
        user_id = self.identity.current_user_id()
        if not user_id:
            raise NotAuthenticated()
        return cards_collection_path(user_id)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.identity.current_user_id())

    async def put(self, card: Card) -> None:
        """Create or overwrite the card's remote document.

        ``updatedAt`` is refreshed on every call, whether or not anything
        changed. An image that cannot be encoded is uploaded as null.
        """
        collection = self._collection()
        image_base64 = encode_image_for_document(card.image_data, self.max_image_bytes)
        if card.image_data and image_base64 is None:
            logger.warning("Uploading card %s without image (encode failed)", card.id)
        body = local_card_to_remote(card, image_base64, datetime.now(timezone.utc))
        await self.store.set_document(collection, str(card.id), body)
        logger.info("Card uploaded: %s (%s)", card.display_name, card.id)

    async def delete(self, card_id: uuid.UUID) -> None:
        collection = self._collection()
        await self.store.delete_document(collection, str(card_id))
        logger.info("Card deleted remotely: %s", card_id)

    async def list_all(self) -> list[Card]:
        """Every remote card, decoded. Undecodable documents are skipped."""
        collection = self._collection()
        documents = await self.store.list_documents(collection)

        cards: list[Card] = []
        for doc_id, data in documents:
            try:
                doc = remote_card_to_local(data)
            except DecodeFailure as e:
                logger.warning("Skipping remote card %s: %s", doc_id, e.message)
                continue
            if str(doc.id) != doc_id:
                logger.warning("Remote card %s carries mismatched id %s; using document key", doc_id, doc.id)
                try:
                    doc.id = uuid.UUID(doc_id)
                except ValueError:
                    logger.warning("Skipping remote card %s: key is not a UUID", doc_id)
                    continue

            cards.append(
                Card(
                    id=doc.id,
                    name=doc.name,
                    title=doc.title,
                    phone=doc.phone,
                    email=doc.email,
                    website=doc.website,
                    company_name=doc.company_name,
                    department=doc.department,
                    address=doc.address,
                    company_description=doc.company_description,
                    person_role_description=doc.person_role_description,
                    industry=doc.industry,
                    image_data=decode_image_from_document(doc.image_data_base64),
                    created_at=doc.created_at,
                    is_synced_to_cloud=False,
                )
            )

        logger.info("Fetched %d cards from cloud (%d documents)", len(cards), len(documents))
        return cards

    async def delete_all_for_user(self) -> int:
        """Remove every card document of the current user. Returns the count removed."""
        collection = self._collection()
        documents = await self.store.list_documents(collection)
        for doc_id, _ in documents:
            await self.store.delete_document(collection, doc_id)
        logger.info("Deleted %d remote cards", len(documents))
        return len(documents)
