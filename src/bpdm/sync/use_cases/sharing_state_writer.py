"""Sharing-State Writer - records Pool outcomes in the Gate ledger.

Every answered Pool request ends up as one ledger row: ``Success`` with the
BPN the Pool assigned, or ``Error`` with the Pool's message. Rows are keyed
by ``(external_id, lsa_type)`` and the Gate upserts on that key, so running
a write-back twice leaves the ledger unchanged.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from ..domain.entities import (
    ByBpn,
    ByExternalId,
    ErrorInfo,
    LsaType,
    SharingErrorCode,
    SharingFailure,
    SharingOutcome,
    SharingState,
    SharingStateType,
    SharingSuccess,
    SkippedItem,
    SkipReason,
    UpsertResponse,
    WriteBackResult,
    resolve_external_id,
)
from ..domain.ports import IGateAPI

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SharingStateWriter:
    """Writes Pool create/update outcomes back into the Gate."""

    def __init__(self, gate_api: IGateAPI, now: Callable[[], datetime] = utc_now):
        """Initialize the writer.

        Args:
            gate_api: Port used for the ledger upserts
            now: Clock used for ``sharing_process_started``
        """
        self.gate = gate_api
        self.now = now

    async def report_outcome(
        self,
        lsa_type: LsaType,
        external_id: str,
        outcome: SharingOutcome,
        process_started: bool = True,
    ) -> SharingState:
        """Upsert the ledger row for one record.

        Failures keep the Pool error code only inside the message text; the
        structured code is always ``SharingProcessError``. When
        ``process_started`` is False the failure row carries no start time.
        """
        if isinstance(outcome, SharingFailure):
            state = SharingState(
                external_id=external_id,
                lsa_type=lsa_type,
                sharing_state_type=SharingStateType.ERROR,
                sharing_error_code=SharingErrorCode.SHARING_PROCESS_ERROR,
                sharing_error_message=f"{outcome.message} ({outcome.error_code})",
                sharing_process_started=self.now() if process_started else None,
            )
        else:
            state = SharingState(
                external_id=external_id,
                lsa_type=lsa_type,
                sharing_state_type=SharingStateType.SUCCESS,
                bpn=outcome.bpn,
                sharing_process_started=self.now(),
            )

        await self.gate.upsert_sharing_state(state)
        return state

    async def write_create_outcomes(
        self,
        lsa_type: LsaType,
        response: UpsertResponse,
    ) -> WriteBackResult:
        """Write back a create response; successes and errors are keyed by index."""
        result = WriteBackResult()

        for entity in response.entities:
            if not entity.index:
                result.skipped.append(
                    SkippedItem(SkipReason.MISSING_INDEX, entity.bpn, "created entity without index")
                )
                continue
            if not entity.bpn:
                result.skipped.append(
                    SkippedItem(SkipReason.MISSING_BPN, entity.index, "created entity without BPN")
                )
                continue
            result.written.append(
                await self.report_outcome(lsa_type, entity.index, SharingSuccess(entity.bpn))
            )

        valid = len(result.written)
        for error in response.errors:
            external_id = resolve_external_id(ByExternalId(error.entity_key))
            if external_id is None:
                result.skipped.append(
                    SkippedItem(SkipReason.MISSING_INDEX, None, f"error without index: {error.message}")
                )
                continue
            result.written.append(
                await self.report_outcome(lsa_type, external_id, _failure(error), process_started=True)
            )

        self._log_written(lsa_type, "new", valid, len(result.written) - valid)
        self._warn_skipped(lsa_type, result)
        return result

    async def write_update_outcomes(
        self,
        lsa_type: LsaType,
        response: UpsertResponse,
        external_id_by_bpn: dict[str, str],
    ) -> WriteBackResult:
        """Write back an update response; records are keyed by BPN.

        BPNs missing from ``external_id_by_bpn`` cannot be traced to a Gate
        record and are skipped without a write.
        """
        result = WriteBackResult()

        for entity in response.entities:
            external_id = resolve_external_id(ByBpn(entity.bpn), external_id_by_bpn)
            if external_id is None:
                result.skipped.append(
                    SkippedItem(SkipReason.CORRELATION_MISS, entity.bpn, "updated BPN not in batch")
                )
                continue
            result.written.append(
                await self.report_outcome(lsa_type, external_id, SharingSuccess(entity.bpn))
            )

        valid = len(result.written)
        for error in response.errors:
            external_id = resolve_external_id(ByBpn(error.entity_key), external_id_by_bpn)
            if external_id is None:
                result.skipped.append(
                    SkippedItem(SkipReason.CORRELATION_MISS, error.entity_key, error.message)
                )
                continue
            result.written.append(
                await self.report_outcome(lsa_type, external_id, _failure(error), process_started=False)
            )

        self._log_written(lsa_type, "updated", valid, len(result.written) - valid)
        self._warn_skipped(lsa_type, result)
        return result

    @staticmethod
    def _log_written(lsa_type: LsaType, kind: str, valid: int, invalid: int) -> None:
        if valid or invalid:
            logger.info(
                f"Sharing states for {valid} valid and {invalid} invalid {kind} "
                f"{lsa_type.label} were updated in the Gate"
            )

    @staticmethod
    def _warn_skipped(lsa_type: LsaType, result: WriteBackResult) -> None:
        for item in result.skipped:
            logger.warning(
                f"Could not write sharing state for {lsa_type.value} '{item.id}' "
                f"({item.reason.value}): {item.detail}"
            )


def _failure(error: ErrorInfo) -> SharingFailure:
    return SharingFailure(error_code=error.error_code, message=error.message)
