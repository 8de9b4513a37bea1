"""Field mapping between Gate/Pool JSON payloads and domain entities.

All wire formats use camelCase keys. Partner data itself (names,
identifiers, postal addresses, ...) is carried as an opaque dict: the
bridge forwards what the provider submitted to the Gate to the Pool without
interpreting it.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from ..domain.entities import (
    AddressGateInput,
    ChangelogEntry,
    ErrorInfo,
    GateRecord,
    LegalEntityGateInput,
    LsaType,
    Page,
    PoolCreateRequest,
    PoolEntityResult,
    PoolUpdateRequest,
    SharingErrorCode,
    SharingState,
    SharingStateType,
    SiteGateInput,
    StartAfterPage,
    UpsertResponse,
)

# Key of the nested partner object in Gate records and Pool requests/responses
PARTNER_KEYS = {
    LsaType.LEGAL_ENTITY: "legalEntity",
    LsaType.SITE: "site",
    LsaType.ADDRESS: "address",
}

# Key carrying the parent BPN in Pool create requests
PARENT_BPN_KEYS = {
    LsaType.SITE: "bpnlParent",
    LsaType.ADDRESS: "bpnParent",
}

# Key carrying the record's own BPN in Pool update requests
UPDATE_BPN_KEYS = {
    LsaType.LEGAL_ENTITY: "bpnl",
    LsaType.SITE: "bpns",
    LsaType.ADDRESS: "bpna",
}

_BPN_FIELDS = ("bpn", "bpnl", "bpns", "bpna")


def parse_timestamp(iso_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if not iso_string:
        return None
    parsed = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format as a zone-less UTC ISO 8601 string (the Gate stores local date-times)."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


def format_instant(value: Optional[datetime]) -> Optional[str]:
    """Format as a UTC ISO 8601 instant with a ``Z`` suffix; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class GateFieldMapper:
    """Maps Gate API responses to domain entities and back."""

    def map_changelog_page(self, raw: dict[str, Any]) -> Page[ChangelogEntry]:
        return Page(
            content=[self.map_changelog_entry(item) for item in raw.get("content", [])],
            total_pages=raw.get("totalPages", 0),
            total_elements=raw.get("totalElements", 0),
            page=raw.get("page", 0),
        )

    def map_changelog_entry(self, raw: dict[str, Any]) -> ChangelogEntry:
        return ChangelogEntry(
            external_id=raw["externalId"],
            lsa_type=LsaType(raw["businessPartnerType"]),
            timestamp=parse_timestamp(raw.get("timestamp")),
        )

    def map_records_page(
        self,
        lsa_type: LsaType,
        raw: dict[str, Any],
    ) -> StartAfterPage[GateRecord]:
        return StartAfterPage(
            content=[self.map_record(lsa_type, item) for item in raw.get("content", [])],
            next_start_after=raw.get("nextStartAfter"),
            invalid_entries=raw.get("invalidEntries", 0),
            total=raw.get("total", 0),
        )

    def map_record(self, lsa_type: LsaType, raw: dict[str, Any]) -> GateRecord:
        """Transform one Gate input record into its domain entity.

        Args:
            lsa_type: Type of the endpoint the record came from
            raw: Record as returned by the Gate

        Returns:
            LegalEntityGateInput, SiteGateInput or AddressGateInput
        """
        payload = raw.get(PARTNER_KEYS[lsa_type]) or {}

        if lsa_type is LsaType.LEGAL_ENTITY:
            return LegalEntityGateInput(
                external_id=raw["externalId"],
                payload=payload,
                bpn=raw.get("bpn"),
            )
        if lsa_type is LsaType.SITE:
            return SiteGateInput(
                external_id=raw["externalId"],
                legal_entity_external_id=raw.get("legalEntityExternalId"),
                payload=payload,
                bpn=raw.get("bpn"),
            )
        return AddressGateInput(
            external_id=raw["externalId"],
            legal_entity_external_id=raw.get("legalEntityExternalId"),
            site_external_id=raw.get("siteExternalId"),
            payload=payload,
            bpn=raw.get("bpn"),
        )

    def map_sharing_states_page(self, raw: dict[str, Any]) -> Page[SharingState]:
        return Page(
            content=[self.map_sharing_state(item) for item in raw.get("content", [])],
            total_pages=raw.get("totalPages", 0),
            total_elements=raw.get("totalElements", 0),
            page=raw.get("page", 0),
        )

    def map_sharing_state(self, raw: dict[str, Any]) -> SharingState:
        error_code = raw.get("sharingErrorCode")
        return SharingState(
            external_id=raw["externalId"],
            lsa_type=LsaType(raw["lsaType"]),
            sharing_state_type=SharingStateType(raw.get("sharingStateType", "Pending")),
            bpn=raw.get("bpn"),
            sharing_error_code=SharingErrorCode(error_code) if error_code else None,
            sharing_error_message=raw.get("sharingErrorMessage"),
            sharing_process_started=parse_timestamp(raw.get("sharingProcessStarted")),
        )

    def sharing_state_to_json(self, state: SharingState) -> dict[str, Any]:
        return {
            "externalId": state.external_id,
            "lsaType": state.lsa_type.value,
            "sharingStateType": state.sharing_state_type.value,
            "sharingErrorCode": (
                state.sharing_error_code.value if state.sharing_error_code else None
            ),
            "sharingErrorMessage": state.sharing_error_message,
            "bpn": state.bpn,
            "sharingProcessStarted": format_timestamp(state.sharing_process_started),
        }


class PoolFieldMapper:
    """Maps Pool batch requests and responses."""

    def create_request_to_json(
        self,
        lsa_type: LsaType,
        request: PoolCreateRequest,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            PARTNER_KEYS[lsa_type]: request.payload,
            "index": request.index,
        }
        if lsa_type in PARENT_BPN_KEYS:
            body[PARENT_BPN_KEYS[lsa_type]] = request.bpn_parent
        return body

    def update_request_to_json(
        self,
        lsa_type: LsaType,
        request: PoolUpdateRequest,
    ) -> dict[str, Any]:
        return {
            PARTNER_KEYS[lsa_type]: request.payload,
            UPDATE_BPN_KEYS[lsa_type]: request.bpn,
        }

    def map_upsert_response(
        self,
        lsa_type: LsaType,
        raw: Optional[dict[str, Any]],
    ) -> UpsertResponse:
        """Parse a create or update batch response.

        Counts fall back to the list lengths when the Pool omits them.
        """
        raw = raw or {}
        entities = [self.map_entity(lsa_type, item) for item in raw.get("entities", [])]
        errors = [
            ErrorInfo(
                error_code=str(item.get("errorCode")),
                message=item.get("message") or "",
                entity_key=item.get("entityKey"),
            )
            for item in raw.get("errors", [])
        ]
        return UpsertResponse(
            entities=entities,
            errors=errors,
            entity_count=raw.get("entityCount", len(entities)),
            error_count=raw.get("errorCount", len(errors)),
        )

    def map_entity(self, lsa_type: LsaType, raw: dict[str, Any]) -> PoolEntityResult:
        # Create responses nest the partner ({"legalEntity": {"bpnl": ...}, "index": ...}),
        # some update responses return the partner object itself.
        nested = raw.get(PARTNER_KEYS[lsa_type])
        bpn = self._extract_bpn(nested) if isinstance(nested, dict) else None
        return PoolEntityResult(
            bpn=bpn or self._extract_bpn(raw),
            index=raw.get("index"),
        )

    @staticmethod
    def _extract_bpn(raw: dict[str, Any]) -> Optional[str]:
        for key in _BPN_FIELDS:
            if raw.get(key):
                return raw[key]
        return None
