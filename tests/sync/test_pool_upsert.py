"""Tests for the PoolUpsertService."""

import logging

from src.bpdm.sync.domain.entities import (
    LegalEntityGateInput,
    LsaType,
    PoolCreateRequest,
    SiteGateInput,
    UpsertResponse,
)
from src.bpdm.sync.domain.ports import IPoolAPI
from src.bpdm.sync.use_cases import PoolUpsertService


class ShortCountingPoolAPI(IPoolAPI):
    """Pool that answers fewer requests than it was sent."""

    async def create(self, lsa_type, requests):
        return UpsertResponse(entity_count=len(requests) - 1)

    async def update(self, lsa_type, requests):
        return UpsertResponse(entity_count=len(requests) - 1)


class TestBuildCreateRequests:
    """Tests for create request construction."""

    def test_index_is_external_id(self):
        site = SiteGateInput("s-1", legal_entity_external_id="le-1", payload={"name": "Plant"})

        requests = PoolUpsertService.build_create_requests([(site, "BPNL000000000001")])

        assert requests == [
            PoolCreateRequest(index="s-1", payload={"name": "Plant"}, bpn_parent="BPNL000000000001")
        ]

    def test_legal_entities_have_no_parent(self):
        requests = PoolUpsertService.build_create_requests([(LegalEntityGateInput("le-1"), None)])
        assert requests[0].bpn_parent is None


class TestCreate:
    """Tests for create batches."""

    async def test_counts_sum_to_batch_size(self, make_pool):
        pool = make_pool(refuse={"le-2": "LegalEntityDuplicateIdentifier"})
        service = PoolUpsertService(pool)
        requests = [PoolCreateRequest(index=f"le-{i}", payload={}) for i in range(1, 4)]

        response = await service.create(LsaType.LEGAL_ENTITY, requests)

        assert response.entity_count == 2
        assert response.error_count == 1
        assert response.entity_count + response.error_count == len(requests)
        assert response.errors[0].entity_key == "le-2"

    async def test_empty_batch_is_not_sent(self, make_pool):
        pool = make_pool()

        response = await PoolUpsertService(pool).create(LsaType.SITE, [])

        assert pool.create_calls == 0
        assert response.accounts_for(0)

    async def test_logs_accepted_and_refused(self, make_pool, caplog):
        pool = make_pool(refuse={"le-1": "LegalEntityDuplicateIdentifier"})

        with caplog.at_level(logging.INFO):
            await PoolUpsertService(pool).create(
                LsaType.LEGAL_ENTITY,
                [PoolCreateRequest(index="le-1", payload={}), PoolCreateRequest(index="le-2", payload={})],
            )

        assert "Pool accepted 1 new legal entities, 1 were refused" in caplog.text

    async def test_warns_when_counts_do_not_add_up(self, caplog):
        with caplog.at_level(logging.WARNING):
            await PoolUpsertService(ShortCountingPoolAPI()).create(
                LsaType.ADDRESS, [PoolCreateRequest(index="a-1", payload={})] * 2
            )

        assert "does not account for the batch" in caplog.text


class TestUpdate:
    """Tests for update batches."""

    async def test_returns_bpn_lookup(self, make_pool):
        pool = make_pool()
        records = [
            LegalEntityGateInput("le-1", bpn="BPNL000000000001"),
            LegalEntityGateInput("le-2", bpn="BPNL000000000002"),
        ]

        response, external_id_by_bpn = await PoolUpsertService(pool).update(LsaType.LEGAL_ENTITY, records)

        assert external_id_by_bpn == {"BPNL000000000001": "le-1", "BPNL000000000002": "le-2"}
        assert [r.bpn for r in pool.updated[LsaType.LEGAL_ENTITY]] == list(external_id_by_bpn)
        assert response.accounts_for(2)

    async def test_error_keyed_by_bpn(self, make_pool):
        pool = make_pool(refuse={"BPNS000000000001": "SiteNotFound"})

        response, _ = await PoolUpsertService(pool).update(
            LsaType.SITE, [SiteGateInput("s-1", bpn="BPNS000000000001")]
        )

        assert response.errors[0].entity_key == "BPNS000000000001"
        assert response.accounts_for(1)

    async def test_empty_batch_is_not_sent(self, make_pool):
        pool = make_pool()

        response, lookup = await PoolUpsertService(pool).update(LsaType.SITE, [])

        assert pool.update_calls == 0
        assert lookup == {}
        assert response.accounts_for(0)
