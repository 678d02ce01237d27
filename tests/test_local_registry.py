"""Local fallback registry: lifecycle, error taxonomy, persistence and concurrency."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from custodia.errors import Expired, InvalidPassword, NotFound, Unauthorized
from custodia.sigil.crypto import password_digest
from custodia.tabula.local import LocalRegistry
from custodia.tabula.models import AccessGrant
from custodia.utils import is_hex32

OWNER = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
CID = "bafkreihdwdcefgh4dqkjv67uzcmw7ojee6xedzdetojuzjevtenxquvyku"


class Clock:
    def __init__(self, now: float = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def registry(clock: Clock) -> LocalRegistry:
    return LocalRegistry(caller=OWNER, clock=clock)


class TestCreateAndVerify:
    def test_password_grant(self, registry: LocalRegistry) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, password_digest("s3cret"))
            content_id = await registry.verify_access(grant_id, "s3cret")
            record = await registry.get_access_record(grant_id)
            return grant_id, content_id, record

        grant_id, content_id, record = asyncio.run(main())
        assert is_hex32(grant_id)
        assert content_id == CID
        assert record.access_count == 1
        assert record.owner == OWNER
        assert record.password_digest == password_digest("s3cret")

    def test_wrong_password_leaves_count(self, registry: LocalRegistry) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, password_digest("s3cret"))
            with pytest.raises(InvalidPassword):
                await registry.verify_access(grant_id, "guess")
            return await registry.get_access_record(grant_id)

        assert asyncio.run(main()).access_count == 0

    def test_no_password_accepts_any_input(self, registry: LocalRegistry) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, None)
            await registry.verify_access(grant_id, "")
            await registry.verify_access(grant_id, "anything at all")
            return await registry.get_access_record(grant_id)

        record = asyncio.run(main())
        assert record.has_password is False
        assert record.password_digest is None
        assert record.access_count == 2

    def test_expiry_boundary(self, registry: LocalRegistry, clock: Clock) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 60, None)
            clock.now += 60
            assert await registry.verify_access(grant_id, "") == CID
            clock.now += 1
            with pytest.raises(Expired):
                await registry.verify_access(grant_id, "")

        asyncio.run(main())

    def test_expiry_checked_before_password(self, registry: LocalRegistry, clock: Clock) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 60, password_digest("pw"))
            clock.now += 3600
            with pytest.raises(Expired):
                await registry.verify_access(grant_id, "wrong")

        asyncio.run(main())

    def test_unknown_grant(self, registry: LocalRegistry) -> None:
        async def main():
            for call in (
                registry.verify_access("0x" + "00" * 32, ""),
                registry.get_access_grant_details("0x" + "00" * 32),
                registry.revoke("garbage"),
            ):
                with pytest.raises(NotFound):
                    await call

        asyncio.run(main())

    def test_ids_are_unique_for_identical_calls(self, registry: LocalRegistry) -> None:
        async def main():
            return [await registry.create_access_grant(CID, 3600, None) for _ in range(20)]

        ids = asyncio.run(main())
        assert len(set(ids)) == 20

    def test_public_grant_lives_one_day(self, registry: LocalRegistry, clock: Clock) -> None:
        async def main():
            grant_id = await registry.create_access_grant("QmTest123", 86400, None)
            assert await registry.verify_access(grant_id, "") == "QmTest123"
            clock.now += 86401
            with pytest.raises(Expired):
                await registry.verify_access(grant_id, "")
            return await registry.get_access_record(grant_id)

        assert asyncio.run(main()).access_count == 1

    def test_uppercase_grant_id(self, registry: LocalRegistry) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, None)
            upper = "0x" + grant_id[2:].upper()
            assert await registry.verify_access(upper, "") == CID
            await registry.extend(upper, (await registry.get_access_grant_details(upper)).expiry_time + 60)
            await registry.revoke(upper)
            return grant_id, await registry.list_grants()

        grant_id, grants = asyncio.run(main())
        assert [g.id for g in grants] == [grant_id]
        assert grants[0].access_count == 1
        assert grants[0].is_active is False

    @pytest.mark.parametrize("duration", [0, -5, True, 1.5])
    def test_invalid_duration(self, registry: LocalRegistry, duration) -> None:
        with pytest.raises(ValueError):
            asyncio.run(registry.create_access_grant(CID, duration, None))

    def test_invalid_digest(self, registry: LocalRegistry) -> None:
        with pytest.raises(ValueError):
            asyncio.run(registry.create_access_grant(CID, 60, b"short"))


class TestDetails:
    def test_details_do_not_count_access(self, registry: LocalRegistry, clock: Clock) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, password_digest("pw"))
            details = await registry.get_access_grant_details(grant_id)
            record = await registry.get_access_record(grant_id)
            return details, record

        details, record = asyncio.run(main())
        assert details.owner == OWNER
        assert details.content_id == CID
        assert details.expiry_time == int(clock.now) + 3600
        assert details.has_password is True
        assert record.access_count == 0

    def test_details_available_after_expiry(self, registry: LocalRegistry, clock: Clock) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 60, None)
            clock.now += 3600
            return await registry.get_access_grant_details(grant_id)

        details = asyncio.run(main())
        assert details.is_expired(clock.now)

    def test_audit_record(self, registry: LocalRegistry, clock: Clock) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, None)
            return await registry.get_access_record(grant_id)

        record = asyncio.run(main())
        audit = record.to_audit_record()
        assert audit["contentId"] == CID
        assert audit["accessCount"] == 0
        assert audit["isActive"] is True
        assert audit["createdAt"] == int(clock.now)
        assert "passwordDigest" not in audit


class TestOwnerOperations:
    def test_revoke(self, registry: LocalRegistry) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, None)
            await registry.revoke(grant_id)
            with pytest.raises(Expired):
                await registry.verify_access(grant_id, "")
            with pytest.raises(Expired):
                await registry.revoke(grant_id)
            return await registry.get_access_record(grant_id)

        record = asyncio.run(main())
        assert record.is_active is False

    def test_extend(self, registry: LocalRegistry, clock: Clock) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 60, None)
            details = await registry.get_access_grant_details(grant_id)
            await registry.extend(grant_id, details.expiry_time + 600)
            clock.now += 300
            return await registry.verify_access(grant_id, "")

        assert asyncio.run(main()) == CID

    def test_extend_must_move_forward(self, registry: LocalRegistry) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 60, None)
            details = await registry.get_access_grant_details(grant_id)
            with pytest.raises(ValueError):
                await registry.extend(grant_id, details.expiry_time)

        asyncio.run(main())

    def test_extend_after_expiry(self, registry: LocalRegistry, clock: Clock) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 60, None)
            clock.now += 61
            with pytest.raises(Expired):
                await registry.extend(grant_id, int(clock.now) + 600)

        asyncio.run(main())

    def test_only_owner(self, registry: LocalRegistry) -> None:
        intruder = registry.for_caller(OTHER)

        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, None)
            with pytest.raises(Unauthorized):
                await intruder.revoke(grant_id)
            with pytest.raises(Unauthorized):
                await intruder.extend(grant_id, 2_000_000_000)
            # Anyone may verify.
            assert await intruder.verify_access(grant_id, "") == CID
            return await registry.get_access_record(grant_id)

        record = asyncio.run(main())
        assert record.is_active is True
        assert record.access_count == 1

    def test_owner_match_ignores_case(self, clock: Clock) -> None:
        registry = LocalRegistry(caller="0xAbCdEf0000000000000000000000000000aBcDeF", clock=clock)
        same_owner = registry.for_caller("0xabcdef0000000000000000000000000000abcdef")

        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, None)
            await same_owner.revoke(grant_id)

        asyncio.run(main())


class TestConcurrency:
    def test_no_lost_increments(self, registry: LocalRegistry) -> None:
        async def main():
            grant_id = await registry.create_access_grant(CID, 3600, None)
            await asyncio.gather(*(registry.verify_access(grant_id, "") for _ in range(25)))
            return await registry.get_access_record(grant_id)

        assert asyncio.run(main()).access_count == 25

    def test_no_lost_increments_across_instances(self, tmp_path: Path, clock: Clock) -> None:
        path = tmp_path / "grants.json"
        first = LocalRegistry(caller=OWNER, path=path, clock=clock)
        second = LocalRegistry(caller=OTHER, path=path, clock=clock)

        async def main():
            grant_id = await first.create_access_grant(CID, 3600, None)
            await asyncio.gather(
                *(first.verify_access(grant_id, "") for _ in range(10)),
                *(second.verify_access(grant_id, "") for _ in range(10)),
            )
            return await first.get_access_record(grant_id)

        assert asyncio.run(main()).access_count == 20


class TestPersistence:
    def test_state_survives_restart(self, tmp_path: Path, clock: Clock) -> None:
        path = tmp_path / "registry" / "grants.json"

        async def create():
            registry = LocalRegistry(caller=OWNER, path=path, clock=clock)
            grant_id = await registry.create_access_grant(CID, 3600, password_digest("pw"))
            await registry.verify_access(grant_id, "pw")
            return grant_id

        grant_id = asyncio.run(create())
        reopened = LocalRegistry(caller=OWNER, path=path, clock=clock)
        record = asyncio.run(reopened.get_access_record(grant_id))
        assert record.access_count == 1
        assert record.password_digest == password_digest("pw")

        stored = json.loads(path.read_text(encoding="utf-8"))
        assert grant_id in stored["grants"]
        assert stored["grants"][grant_id]["passwordDigest"] == password_digest("pw").hex()

    def test_list_grants(self, tmp_path: Path, clock: Clock) -> None:
        path = tmp_path / "grants.json"
        mine = LocalRegistry(caller=OWNER, path=path, clock=clock)
        theirs = mine.for_caller(OTHER)

        async def main():
            first = await mine.create_access_grant(CID, 3600, None)
            clock.now += 10
            second = await mine.create_access_grant(CID, 3600, None)
            await theirs.create_access_grant(CID, 3600, None)
            return first, second, await mine.list_grants(owner=OWNER), await mine.list_grants()

        first, second, owned, everything = asyncio.run(main())
        assert [g.id for g in owned] == [second, first]
        assert len(everything) == 3
        assert all(isinstance(g, AccessGrant) for g in everything)


class TestAccessGrantModel:
    def test_digest_iff_password(self) -> None:
        with pytest.raises(ValueError):
            AccessGrant(
                id="0x" + "00" * 32,
                owner=OWNER,
                content_id=CID,
                expiry_time=200,
                has_password=True,
                password_digest=None,
                access_count=0,
                is_active=True,
                created_at=100,
            )

    def test_created_before_expiry(self) -> None:
        with pytest.raises(ValueError):
            AccessGrant(
                id="0x" + "00" * 32,
                owner=OWNER,
                content_id=CID,
                expiry_time=100,
                has_password=False,
                password_digest=None,
                access_count=0,
                is_active=True,
                created_at=100,
            )

    def test_status(self) -> None:
        grant = AccessGrant(
            id="0x" + "00" * 32,
            owner=OWNER,
            content_id=CID,
            expiry_time=200,
            has_password=False,
            password_digest=None,
            access_count=0,
            is_active=True,
            created_at=100,
        )
        assert grant.status(150) == "active"
        assert grant.status(201) == "expired"
