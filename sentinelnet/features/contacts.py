"""
Emergency contact book for SentinelNet.

This module keeps up to five emergency contacts in the device-local
key-value store. Invalid input is rejected with a False result.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import ValidationError
from sentinelnet.core.models import Contact
from sentinelnet.ports.kvstore import KVStorePort
from sentinelnet.observability.logging_setup import get_logger

log = get_logger("sentinelnet.contacts")

MAX_CONTACTS = 5


class ContactBook:
    """비상 연락처 목록"""

    def __init__(self, store: KVStorePort, *, key: str = "sentinelnet_emergency_contacts",
                 max_contacts: int = MAX_CONTACTS):
        self.store = store
        self.key = key
        self.max_contacts = max_contacts
        self._contacts: List[Contact] = []

    async def load(self) -> List[Contact]:
        """저장소에서 연락처를 불러옵니다. 손상된 항목은 건너뜁니다."""
        try:
            raw = await self.store.get(self.key)
        except Exception as e:
            log.error("연락처 불러오기 실패", error=str(e))
            return self.contacts

        if not raw:
            return self.contacts

        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            log.error("연락처 데이터 파싱 실패", error=str(e))
            return self.contacts

        contacts = []
        if isinstance(items, list):
            for item in items:
                try:
                    contacts.append(Contact.model_validate(item))
                except ValidationError:
                    log.warning("잘못된 연락처 항목 무시")
        self._contacts = contacts[: self.max_contacts]
        log.info("연락처 불러옴", count=len(self._contacts))
        return self.contacts

    async def _save(self) -> None:
        payload = json.dumps([c.model_dump() for c in self._contacts], ensure_ascii=False)
        try:
            await self.store.put(self.key, payload)
        except Exception as e:
            log.error("연락처 저장 실패", error=str(e))

    async def add(self, name: Optional[str], phone: Optional[str]) -> bool:
        """
        연락처를 추가합니다.

        Args:
            name: 이름
            phone: 전화번호

        Returns:
            추가 성공 여부 (최대 개수 초과, 빈 값이면 False)
        """
        if len(self._contacts) >= self.max_contacts:
            log.warning("연락처 최대 개수에 도달했습니다", max=self.max_contacts)
            return False

        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name or not phone:
            log.warning("잘못된 연락처 데이터")
            return False

        contact = Contact(
            id=uuid.uuid4().hex,
            name=name,
            phone=phone,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._contacts.append(contact)
        await self._save()
        log.info("연락처 추가됨", name=contact.name)
        return True

    async def remove(self, contact_id: str) -> bool:
        before = len(self._contacts)
        self._contacts = [c for c in self._contacts if c.id != contact_id]
        removed = len(self._contacts) < before
        if removed:
            await self._save()
        log.info("연락처 삭제", removed=removed, remaining=len(self._contacts))
        return removed

    async def update(self, contact_id: str, *, name: Optional[str] = None,
                     phone: Optional[str] = None) -> bool:
        """빈 값은 기존 값을 유지합니다."""
        for i, contact in enumerate(self._contacts):
            if contact.id == contact_id:
                self._contacts[i] = contact.model_copy(update={
                    "name": (name or "").strip() or contact.name,
                    "phone": (phone or "").strip() or contact.phone,
                })
                await self._save()
                return True
        return False

    @property
    def contacts(self) -> List[Contact]:
        return list(self._contacts)

    @property
    def can_add_more(self) -> bool:
        return len(self._contacts) < self.max_contacts
