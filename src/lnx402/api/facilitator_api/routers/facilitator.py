"""Facilitator API routes: verify, settle and settlement lookup."""

from __future__ import annotations

import time
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from prometheus_client import Counter, Gauge, Histogram

from ....application.facilitator.dtos import (
    FacilitatorRequestDTO,
    SupportedKindDTO,
    SupportedResponseDTO,
)
from ....application.facilitator.use_cases.settlement import SettlementService
from ....application.facilitator.use_cases.verification import VerificationService
from ....domain.facilitator.entities import (
    EXACT_SCHEME,
    SettlementRecord,
    SettlementResponse,
    VerificationResult,
)
from ..dependencies import get_settlement_service, get_verification_service

router = APIRouter(tags=["facilitator"])

REQUEST_DURATION_BUCKETS = (
    [float(x) for x in range(5, 55, 5)]  # 5..50ms
    + [100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0]
    + [float("inf")]
)

facilitator_requests_total = Counter(
    "facilitator_requests_total",
    "Total facilitator requests processed",
    ["endpoint", "status"],
)

facilitator_request_duration_milliseconds = Histogram(
    "facilitator_request_duration_milliseconds",
    "Wall time to process a facilitator request (ms)",
    ["endpoint", "status"],
    buckets=REQUEST_DURATION_BUCKETS,
)

facilitator_requests_inprogress = Gauge(
    "facilitator_requests_inprogress",
    "Number of facilitator requests currently being processed",
    ["endpoint"],
    multiprocess_mode="livesum",
)


def _observe(endpoint: str, outcome: str, start_time: float) -> None:
    facilitator_requests_total.labels(endpoint=endpoint, status=outcome).inc()
    elapsed = (time.perf_counter() - start_time) * 1000
    facilitator_request_duration_milliseconds.labels(
        endpoint=endpoint, status=outcome
    ).observe(elapsed)


@router.post(
    "/verify",
    response_model=VerificationResult,
    status_code=status.HTTP_200_OK,
)
async def verify_payment(
    payload: FacilitatorRequestDTO,
    response: Response,
    service: VerificationService = Depends(get_verification_service),
) -> VerificationResult:
    """Check that a payment header pays the requirements. Never consumes it."""
    start_time = time.perf_counter()
    facilitator_requests_inprogress.labels(endpoint="verify").inc()
    try:
        result = await service.verify(payload.payment_requirements, payload.payment())
        if result.is_transient:
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            _observe("verify", "transient", start_time)
        else:
            _observe("verify", "valid" if result.is_valid else "invalid", start_time)
        return result
    except Exception as e:
        _observe("verify", "server_error", start_time)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to verify payment: {str(e)}",
        )
    finally:
        facilitator_requests_inprogress.labels(endpoint="verify").dec()


@router.post(
    "/settle",
    response_model=SettlementResponse,
    status_code=status.HTTP_200_OK,
)
async def settle_payment(
    payload: FacilitatorRequestDTO,
    response: Response,
    service: SettlementService = Depends(get_settlement_service),
) -> SettlementResponse:
    """Verify the payment and consume its invoice for the resource."""
    start_time = time.perf_counter()
    facilitator_requests_inprogress.labels(endpoint="settle").inc()
    try:
        result = await service.settle(payload.payment_requirements, payload.payment())
        if result.is_transient:
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            _observe("settle", "transient", start_time)
        else:
            _observe("settle", "valid" if result.success else "invalid", start_time)
        return result
    except Exception as e:
        _observe("settle", "server_error", start_time)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to settle payment: {str(e)}",
        )
    finally:
        facilitator_requests_inprogress.labels(endpoint="settle").dec()


@router.get("/supported", response_model=SupportedResponseDTO)
async def list_supported(
    service: VerificationService = Depends(get_verification_service),
) -> SupportedResponseDTO:
    """Payment kinds this facilitator can verify and settle."""
    kinds: List[SupportedKindDTO] = [
        SupportedKindDTO(x402_version=version, scheme=EXACT_SCHEME, network=network)
        for version in sorted(service.supported_versions)
        for network in sorted(service.supported_networks)
    ]
    return SupportedResponseDTO(kinds=kinds)


@router.get("/settlements", response_model=List[SettlementRecord])
async def list_settlements(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    service: SettlementService = Depends(get_settlement_service),
) -> List[SettlementRecord]:
    return await service.list_settlements(skip=skip, limit=limit)


@router.get("/settlements/{payment_hash}", response_model=SettlementRecord)
async def get_settlement(
    payment_hash: str,
    resource: str = Query(..., description="Resource the invoice was settled for"),
    service: SettlementService = Depends(get_settlement_service),
) -> SettlementRecord:
    record = await service.get_settlement(payment_hash, resource)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Settlement not found"
        )
    return record
