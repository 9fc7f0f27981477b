"""Tests for linking code redemption."""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from tglink.services.link_exchange import LinkResult, redeem_link_code
from tglink.services.telegram_webapp import TelegramUser

from .conftest import NOW, SUPABASE_USER_ID, InMemoryLinkStore

USER = TelegramUser(id=42)


class TestRedeemLinkCode:
    def test_valid_code_links_and_burns(self, store: InMemoryLinkStore) -> None:
        store.add_code("ABC", expires_at=NOW + timedelta(minutes=5))

        assert redeem_link_code(store, USER, "ABC", now=NOW) is LinkResult.LINKED
        assert store.links == {"42": SUPABASE_USER_ID}
        assert store.codes["ABC"].used_at == NOW

    def test_unknown_code(self, store: InMemoryLinkStore) -> None:
        assert redeem_link_code(store, USER, "NOPE", now=NOW) is LinkResult.NOT_FOUND
        assert store.links == {}

    def test_blank_code(self, store: InMemoryLinkStore) -> None:
        store.add_code("")
        assert redeem_link_code(store, USER, "  ", now=NOW) is LinkResult.NOT_FOUND
        assert store.links == {}

    def test_expiring_exactly_now_is_expired(self, store: InMemoryLinkStore) -> None:
        store.add_code("ABC", expires_at=NOW)
        assert redeem_link_code(store, USER, "ABC", now=NOW) is LinkResult.EXPIRED
        assert store.codes["ABC"].used_at is None

    def test_past_expiry(self, store: InMemoryLinkStore) -> None:
        store.add_code("ABC", expires_at=NOW - timedelta(seconds=1))
        assert redeem_link_code(store, USER, "ABC", now=NOW) is LinkResult.EXPIRED

    def test_second_redemption_rejected(self, store: InMemoryLinkStore) -> None:
        store.add_code("ABC", expires_at=NOW + timedelta(minutes=5))

        assert redeem_link_code(store, USER, "ABC", now=NOW) is LinkResult.LINKED
        later = NOW + timedelta(seconds=1)
        assert redeem_link_code(store, USER, "ABC", now=later) is LinkResult.USED

    def test_relinking_overwrites_previous_account(self, store: InMemoryLinkStore) -> None:
        store.add_code("ONE", supabase_user_id="account-1")
        store.add_code("TWO", supabase_user_id="account-2")

        assert redeem_link_code(store, USER, "ONE", now=NOW) is LinkResult.LINKED
        assert redeem_link_code(store, USER, "TWO", now=NOW) is LinkResult.LINKED
        assert store.links == {"42": "account-2"}

    def test_concurrent_redemption_has_single_winner(self) -> None:
        barrier = threading.Barrier(2)

        class RacingStore(InMemoryLinkStore):
            def get_link_code(self, code):
                row = super().get_link_code(code)
                barrier.wait(timeout=5)
                return row

        store = RacingStore()
        store.add_code("ABC", expires_at=NOW + timedelta(minutes=5))
        users = [TelegramUser(id=1), TelegramUser(id=2)]

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(lambda user: redeem_link_code(store, user, "ABC", now=NOW), users))

        assert sorted(results) == sorted([LinkResult.LINKED, LinkResult.CONFLICT])
        assert len(store.links) == 1
