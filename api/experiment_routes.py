from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from models.experiments import ABTestConfig, ABTestCreate, ABTestRun, UserAssignment, VariantAssignmentResponse
from models.results import ABTestResults
from services import assignment, results
from data.storage import StorageAdapter
from config import CookieConfig
from api.depends import CLIENT_AUTH, STORAGE_DEPENDENCY, USER_ID, get_cookie_config, resolve_user_id

import logging

logger = logging.getLogger(__name__)

test_router = APIRouter(
    prefix="/tests",
    tags=["tests"],
    dependencies=[CLIENT_AUTH],
)


def _not_found(test_id: str, detail: str = "not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Test {test_id} {detail}.")


# POST /tests (idempotent: an existing test is returned unchanged)
@test_router.post("", response_model=ABTestConfig, status_code=status.HTTP_201_CREATED)
async def create_test_route(test_data: ABTestCreate, storage: StorageAdapter = STORAGE_DEPENDENCY):
    """Create a test with its variants and weights (equal weights when omitted)."""
    return await assignment.ensure_test_config(
        storage,
        test_data.test_id,
        test_data.variants,
        weights=test_data.weights,
        metadata=test_data.metadata,
    )


@test_router.get("", response_model=list[ABTestConfig])
async def list_tests_route(storage: StorageAdapter = STORAGE_DEPENDENCY):
    return await assignment.list_tests(storage)


@test_router.get("/{test_id}", response_model=ABTestConfig)
async def get_test_route(test_id: str, storage: StorageAdapter = STORAGE_DEPENDENCY):
    test = await assignment.get_test(storage, test_id)
    if not test:
        raise _not_found(test_id)
    return test


@test_router.post("/{test_id}/deactivate", response_model=ABTestConfig)
async def deactivate_test_route(test_id: str, storage: StorageAdapter = STORAGE_DEPENDENCY):
    """Stop a test. New users get no assignment afterwards."""
    if not await assignment.deactivate_test(storage, test_id):
        raise _not_found(test_id)
    return await assignment.get_test(storage, test_id)


# GET /tests/{test_id}/assignment (The Idempotent Logic)
@test_router.get("/{test_id}/assignment", response_model=UserAssignment)
async def get_user_assignment_route(
    test_id: str,
    storage: StorageAdapter = STORAGE_DEPENDENCY,
    user_id: str = USER_ID,
):
    """Get the user's variant assignment. Performs the assignment if none exists."""
    user_assignment = await assignment.resolve_assignment(storage, test_id, user_id)
    if not user_assignment:
        raise _not_found(test_id, "not found or inactive")
    return user_assignment


@test_router.post("/{test_id}/run", response_model=VariantAssignmentResponse)
async def run_test_route(
    test_id: str,
    run_data: ABTestRun,
    request: Request,
    response: Response,
    user_id: str | None = None,
    storage: StorageAdapter = STORAGE_DEPENDENCY,
    cookie: CookieConfig = Depends(get_cookie_config),
):
    """
    One-call flow: creates the test on first use and assigns the user.
    The user id comes from the body, then the query, then the identity cookie.
    A stopped test answers with its first variant flagged as a fallback.
    """
    user_id = resolve_user_id(request, response, cookie, run_data.user_id or user_id)
    handle = await assignment.run_test(
        storage,
        test_id,
        run_data.variants,
        user_id,
        weights=run_data.weights,
        metadata=run_data.metadata,
    )
    return VariantAssignmentResponse(
        variant=handle.variant,
        assignment=handle.assignment,
        is_fallback=handle.is_fallback,
    )


# GET /tests/{test_id}/results
@test_router.get("/{test_id}/results", response_model=ABTestResults)
async def get_test_results_route(test_id: str, storage: StorageAdapter = STORAGE_DEPENDENCY):
    """Per-variant users, conversions and rates, with a naive winner."""
    summary = await results.calculate_summary(storage, test_id)
    if not summary:
        raise _not_found(test_id)
    return summary
