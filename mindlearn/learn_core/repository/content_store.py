from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from mindlearn.learn_core.domain.card import Card
from mindlearn.learn_core.domain.content_base import ContentBase


def new_object_id() -> str:
    """
    @returns 24자리 16진수 문서 ID.
    """
    return secrets.token_hex(12)


class ContentStore(ABC):
    """콘텐츠 베이스/카드 조회 인터페이스."""

    @abstractmethod
    async def get_base_by_domain(self, domain_id: str) -> Optional[ContentBase]:
        """
        @param domain_id 도메인 ID.
        @returns 도메인의 콘텐츠 베이스 또는 None.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_cards_by_node_id(self, domain_id: str, base_id: str, node_id: str) -> List[Card]:
        """
        @param domain_id 도메인 ID.
        @param base_id 베이스 ID.
        @param node_id 노드 ID.
        @returns 노드에 연결된 카드 리스트.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_card_by_id(self, domain_id: str, card_id: str) -> Optional[Card]:
        """
        @param domain_id 도메인 ID.
        @param card_id 카드 ID.
        @returns 카드 또는 None.
        """
        raise NotImplementedError


class InMemoryContentStore(ContentStore):
    """인메모리 콘텐츠 저장소."""

    def __init__(self) -> None:
        """
        @returns None
        """
        self._bases: Dict[str, ContentBase] = {}
        self._cards: Dict[str, Dict[str, Tuple[str, Card]]] = {}
        self.card_lookups = 0

    def put_base(self, base: ContentBase) -> ContentBase:
        """
        @param base 저장할 콘텐츠 베이스.
        @returns 저장된 베이스.
        """
        self._bases[base.domain_id] = base
        return base

    def add_card(self, domain_id: str, base_id: str, card: Card) -> Card:
        """
        @param domain_id 도메인 ID.
        @param base_id 베이스 ID.
        @param card 저장할 카드 (card_id가 비어 있으면 새로 발급).
        @returns 저장된 카드.
        """
        if not card.card_id:
            card = replace(card, card_id=new_object_id())
        self._cards.setdefault(domain_id, {})[card.card_id] = (base_id, card)
        return card

    def touch(self, domain_id: str, at: Optional[datetime] = None) -> None:
        """
        베이스 수정 시각을 갱신해 캐시된 DAG를 낡은 상태로 만듭니다.

        @param domain_id 도메인 ID.
        @param at 새 수정 시각 (기본 현재 UTC).
        @returns None
        """
        base = self._bases.get(domain_id)
        if base is not None:
            base.update_at = at or datetime.now(timezone.utc)

    async def get_base_by_domain(self, domain_id: str) -> Optional[ContentBase]:
        return self._bases.get(domain_id)

    async def get_cards_by_node_id(self, domain_id: str, base_id: str, node_id: str) -> List[Card]:
        self.card_lookups += 1
        cards = [
            card
            for card_base_id, card in self._cards.get(domain_id, {}).values()
            if card_base_id == base_id and card.node_id == node_id
        ]
        return sorted(cards, key=lambda card: card.order)

    async def get_card_by_id(self, domain_id: str, card_id: str) -> Optional[Card]:
        entry = self._cards.get(domain_id, {}).get(card_id)
        return entry[1] if entry else None
