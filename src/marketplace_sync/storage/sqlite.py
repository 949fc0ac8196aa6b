"""SQLite implementation of the StateStore protocol."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from marketplace_sync.models.records import Lifecycle, OfferRecord, RequestRecord

# uint256 values (ids, prices, contract timestamps) are stored as decimal
# TEXT: SQLite integers are 64-bit signed.
SCHEMA = """
-- Last fully projected block
CREATE TABLE IF NOT EXISTS cursor (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    block_number INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Buyer requests
CREATE TABLE IF NOT EXISTS requests (
    transaction_hash TEXT PRIMARY KEY,
    request_id TEXT NOT NULL,
    address TEXT NOT NULL,
    event_name TEXT NOT NULL,
    signature TEXT NOT NULL,
    buyer_address TEXT NOT NULL,
    images TEXT NOT NULL DEFAULT '[]',
    lifecycle INTEGER NOT NULL DEFAULT 0,
    request_name TEXT NOT NULL,
    description TEXT NOT NULL,
    latitude TEXT NOT NULL,
    longitude TEXT NOT NULL,
    buyer_id TEXT NOT NULL,
    seller_ids TEXT NOT NULL DEFAULT '[]',
    sellers_price_quote TEXT NOT NULL,
    locked_seller_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    block_number INTEGER NOT NULL,
    block_timestamp INTEGER,
    synced_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_requests_request_id ON requests(request_id);
CREATE INDEX IF NOT EXISTS idx_requests_lifecycle ON requests(lifecycle);

-- Seller offers
CREATE TABLE IF NOT EXISTS offers (
    transaction_hash TEXT PRIMARY KEY,
    offer_id TEXT NOT NULL,
    request_id TEXT NOT NULL,
    address TEXT NOT NULL,
    event_name TEXT NOT NULL,
    signature TEXT NOT NULL,
    seller_address TEXT NOT NULL,
    store_name TEXT NOT NULL,
    price TEXT NOT NULL,
    images TEXT NOT NULL DEFAULT '[]',
    seller_id TEXT NOT NULL,
    is_accepted INTEGER NOT NULL DEFAULT 0,
    block_number INTEGER NOT NULL,
    block_timestamp INTEGER,
    synced_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_offers_offer_id ON offers(offer_id);
CREATE INDEX IF NOT EXISTS idx_offers_request_id ON offers(request_id);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStateStore:
    """SQLite-backed implementation of the StateStore protocol."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self._db_path)
        try:
            db.row_factory = aiosqlite.Row
            await db.executescript(SCHEMA)
            await db.commit()
        except Exception:
            await db.close()
            raise
        self._db = db

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Cursor ─────────────────────────────────────────────

    async def get_cursor(self) -> int | None:
        async with self.db.execute("SELECT block_number FROM cursor WHERE id=1") as cur:
            row = await cur.fetchone()
            return row["block_number"] if row else None

    async def set_cursor(self, block_number: int) -> None:
        await self.db.execute(
            "INSERT INTO cursor (id, block_number, updated_at) VALUES (1, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET block_number=excluded.block_number,"
            " updated_at=excluded.updated_at",
            (block_number, _now()),
        )
        await self.db.commit()

    # ── Requests ───────────────────────────────────────────

    async def upsert_request(self, request: RequestRecord) -> None:
        # Lifecycle, locked seller and updated_at are owned by later events.
        await self.db.execute(
            "INSERT INTO requests"
            " (transaction_hash, request_id, address, event_name, signature,"
            "  buyer_address, images, lifecycle, request_name, description,"
            "  latitude, longitude, buyer_id, seller_ids, sellers_price_quote,"
            "  locked_seller_id, created_at, updated_at, block_number,"
            "  block_timestamp, synced_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
            " ON CONFLICT(transaction_hash) DO UPDATE SET"
            " request_id=excluded.request_id, address=excluded.address,"
            " event_name=excluded.event_name, signature=excluded.signature,"
            " buyer_address=excluded.buyer_address, images=excluded.images,"
            " request_name=excluded.request_name, description=excluded.description,"
            " latitude=excluded.latitude, longitude=excluded.longitude,"
            " buyer_id=excluded.buyer_id, seller_ids=excluded.seller_ids,"
            " sellers_price_quote=excluded.sellers_price_quote,"
            " created_at=excluded.created_at, block_number=excluded.block_number,"
            " block_timestamp=excluded.block_timestamp, synced_at=excluded.synced_at",
            (
                request.transaction_hash, str(request.request_id), request.address,
                request.event_name, request.signature, request.buyer_address,
                json.dumps(request.images), int(request.lifecycle),
                request.request_name, request.description, request.latitude,
                request.longitude, str(request.buyer_id),
                json.dumps([str(s) for s in request.seller_ids]),
                str(request.sellers_price_quote), str(request.locked_seller_id),
                str(request.created_at), str(request.updated_at),
                request.block_number, request.block_timestamp, _now(),
            ),
        )
        await self.db.commit()

    async def get_request(self, request_id: int) -> RequestRecord | None:
        async with self.db.execute(
            "SELECT * FROM requests WHERE request_id=? ORDER BY block_number LIMIT 1",
            (str(request_id),),
        ) as cur:
            row = await cur.fetchone()
            return _row_to_request(row) if row else None

    async def get_request_by_tx(self, transaction_hash: str) -> RequestRecord | None:
        async with self.db.execute(
            "SELECT * FROM requests WHERE transaction_hash=?", (transaction_hash,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_request(row) if row else None

    async def update_request(
        self,
        request_id: int,
        lifecycle: Lifecycle | None = None,
        locked_seller_id: int | None = None,
        updated_at: int | None = None,
        expected_lifecycle: Lifecycle | None = None,
    ) -> bool:
        sets: list[str] = []
        params: list = []
        if lifecycle is not None:
            sets.append("lifecycle=?")
            params.append(int(lifecycle))
        if locked_seller_id is not None:
            sets.append("locked_seller_id=?")
            params.append(str(locked_seller_id))
        if updated_at is not None:
            sets.append("updated_at=?")
            params.append(str(updated_at))
        if not sets:
            return await self.get_request(request_id) is not None

        sets.append("synced_at=?")
        params.append(_now())
        sql = f"UPDATE requests SET {', '.join(sets)} WHERE request_id=?"
        params.append(str(request_id))
        if expected_lifecycle is not None:
            sql += " AND lifecycle=?"
            params.append(int(expected_lifecycle))

        cur = await self.db.execute(sql, params)
        await self.db.commit()
        return cur.rowcount > 0

    async def get_requests_by_lifecycle(self, lifecycle: Lifecycle) -> list[RequestRecord]:
        async with self.db.execute(
            "SELECT * FROM requests WHERE lifecycle=? ORDER BY block_number",
            (int(lifecycle),),
        ) as cur:
            return [_row_to_request(row) async for row in cur]

    async def get_all_requests(self) -> list[RequestRecord]:
        async with self.db.execute("SELECT * FROM requests ORDER BY block_number") as cur:
            return [_row_to_request(row) async for row in cur]

    async def count_requests_by_lifecycle(self) -> dict[Lifecycle, int]:
        counts = {lc: 0 for lc in Lifecycle}
        async with self.db.execute(
            "SELECT lifecycle, COUNT(*) as c FROM requests GROUP BY lifecycle"
        ) as cur:
            async for row in cur:
                counts[Lifecycle(row["lifecycle"])] = row["c"]
        return counts

    # ── Offers ─────────────────────────────────────────────

    async def upsert_offer(self, offer: OfferRecord) -> None:
        # is_accepted is owned by OfferAccepted and survives replays.
        await self.db.execute(
            "INSERT INTO offers"
            " (transaction_hash, offer_id, request_id, address, event_name,"
            "  signature, seller_address, store_name, price, images, seller_id,"
            "  is_accepted, block_number, block_timestamp, synced_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
            " ON CONFLICT(transaction_hash) DO UPDATE SET"
            " offer_id=excluded.offer_id, request_id=excluded.request_id,"
            " address=excluded.address, event_name=excluded.event_name,"
            " signature=excluded.signature, seller_address=excluded.seller_address,"
            " store_name=excluded.store_name, price=excluded.price,"
            " images=excluded.images, seller_id=excluded.seller_id,"
            " block_number=excluded.block_number,"
            " block_timestamp=excluded.block_timestamp, synced_at=excluded.synced_at",
            (
                offer.transaction_hash, str(offer.offer_id), str(offer.request_id),
                offer.address, offer.event_name, offer.signature,
                offer.seller_address, offer.store_name, str(offer.price),
                json.dumps(offer.images), str(offer.seller_id),
                int(offer.is_accepted), offer.block_number, offer.block_timestamp,
                _now(),
            ),
        )
        await self.db.commit()

    async def get_offer(self, offer_id: int) -> OfferRecord | None:
        async with self.db.execute(
            "SELECT * FROM offers WHERE offer_id=? ORDER BY block_number LIMIT 1",
            (str(offer_id),),
        ) as cur:
            row = await cur.fetchone()
            return _row_to_offer(row) if row else None

    async def get_offer_by_tx(self, transaction_hash: str) -> OfferRecord | None:
        async with self.db.execute(
            "SELECT * FROM offers WHERE transaction_hash=?", (transaction_hash,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_offer(row) if row else None

    async def set_offer_accepted(self, offer_id: int, is_accepted: bool) -> bool:
        # Acceptance is sticky: a false value never clears it.
        cur = await self.db.execute(
            "UPDATE offers SET is_accepted=MAX(is_accepted, ?), synced_at=?"
            " WHERE offer_id=?",
            (int(is_accepted), _now(), str(offer_id)),
        )
        await self.db.commit()
        return cur.rowcount > 0

    async def get_offers_for_request(self, request_id: int) -> list[OfferRecord]:
        async with self.db.execute(
            "SELECT * FROM offers WHERE request_id=? ORDER BY block_number",
            (str(request_id),),
        ) as cur:
            return [_row_to_offer(row) async for row in cur]

    async def get_offers_by_acceptance(self, is_accepted: bool) -> list[OfferRecord]:
        async with self.db.execute(
            "SELECT * FROM offers WHERE is_accepted=? ORDER BY block_number",
            (int(is_accepted),),
        ) as cur:
            return [_row_to_offer(row) async for row in cur]

    async def get_all_offers(self) -> list[OfferRecord]:
        async with self.db.execute("SELECT * FROM offers ORDER BY block_number") as cur:
            return [_row_to_offer(row) async for row in cur]

    async def count_offers(self) -> int:
        async with self.db.execute("SELECT COUNT(*) as c FROM offers") as cur:
            row = await cur.fetchone()
            return row["c"] if row else 0


def _row_to_request(row: aiosqlite.Row) -> RequestRecord:
    return RequestRecord(
        transaction_hash=row["transaction_hash"],
        request_id=int(row["request_id"]),
        address=row["address"],
        event_name=row["event_name"],
        signature=row["signature"],
        buyer_address=row["buyer_address"],
        images=json.loads(row["images"]),
        lifecycle=Lifecycle(row["lifecycle"]),
        request_name=row["request_name"],
        description=row["description"],
        latitude=row["latitude"],
        longitude=row["longitude"],
        buyer_id=int(row["buyer_id"]),
        seller_ids=[int(s) for s in json.loads(row["seller_ids"])],
        sellers_price_quote=int(row["sellers_price_quote"]),
        locked_seller_id=int(row["locked_seller_id"]),
        created_at=int(row["created_at"]),
        updated_at=int(row["updated_at"]),
        block_number=row["block_number"],
        block_timestamp=row["block_timestamp"],
    )


def _row_to_offer(row: aiosqlite.Row) -> OfferRecord:
    return OfferRecord(
        transaction_hash=row["transaction_hash"],
        offer_id=int(row["offer_id"]),
        request_id=int(row["request_id"]),
        address=row["address"],
        event_name=row["event_name"],
        signature=row["signature"],
        seller_address=row["seller_address"],
        store_name=row["store_name"],
        price=int(row["price"]),
        images=json.loads(row["images"]),
        seller_id=int(row["seller_id"]),
        is_accepted=bool(row["is_accepted"]),
        block_number=row["block_number"],
        block_timestamp=row["block_timestamp"],
    )
